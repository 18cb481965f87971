#!/usr/bin/env python
"""
Shared constants for the face_id project.

Fixed values that preprocessing, postprocessing and model loading must agree
on. Changing any of them changes what the bundled models expect.
"""

from pathlib import Path

# --- Core Paths ---
PROJECT_ROOT = Path(__file__).resolve().parents[2]
ASSETS_DIR = PROJECT_ROOT / "assets"

# Read-only location of models shipped with the system image.
SYSTEM_MODEL_DIR = "/system/etc/face"

# --- Detection Models ---
# Detectors always emit this many slots, whatever their scores.
NUM_DETECTIONS = 10
BOX_COORDINATES = 4
# Label files reserve index 0 for the background class.
LABEL_OFFSET = 1

# --- Embedding Models ---
EMBEDDING_DIM = 512
# Score of an embedding result, which carries no detection semantics.
EMBEDDING_SCORE_SENTINEL = float("inf")
EMBEDDING_LABEL = "?"

# --- Float Model Normalization ---
# Per-channel means, subtracted in B, G, R write order.
FIRST_CHANNEL_MEAN = 131.0912
SECOND_CHANNEL_MEAN = 103.8827
THIRD_CHANNEL_MEAN = 91.4953

CHANNELS = 3
