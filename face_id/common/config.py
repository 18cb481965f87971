"""
Central configuration for the recognition pipeline.

Defaults live in PIPELINE_CONFIG; a YAML file can override any of them.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .constants import ASSETS_DIR, EMBEDDING_DIM, SYSTEM_MODEL_DIR

# --- Pipeline Configuration ---
PIPELINE_CONFIG = {
    "MODEL_FILENAME": "mobile_face_net.onnx",
    "LABEL_FILENAME": "labelmap.txt",
    "INPUT_SIZE": 112,
    "IS_QUANTIZED": False,
    "HW_ACCELERATION": False,
    "USE_ENHANCED_ACCELERATION": False,
    "NUM_THREADS": 4,
    "EMBEDDING_SIZE": EMBEDDING_DIM,
    "ASSETS_DIR": str(ASSETS_DIR),
    "SYSTEM_MODEL_DIR": SYSTEM_MODEL_DIR,
}


def load_config(
    path: Optional[Union[str, Path]] = None, overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Merge a YAML config file and explicit overrides over PIPELINE_CONFIG.

    Keys are case-insensitive in the file and upper-cased in the result.

    Args:
        path: Optional YAML file with a flat mapping of settings
        overrides: Optional settings applied after the file

    Returns:
        A new config dictionary

    Raises:
        ValueError: If a key is unknown or the file is not a mapping
    """
    config = dict(PIPELINE_CONFIG)

    if path is not None:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        _merge(config, loaded)

    if overrides:
        _merge(config, overrides)

    return config


def _merge(config: Dict[str, Any], values: Dict[str, Any]):
    for key, value in values.items():
        normalized = str(key).upper()
        if normalized not in PIPELINE_CONFIG:
            raise ValueError(f"Unknown config key '{key}'")
        config[normalized] = value
