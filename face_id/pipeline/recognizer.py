"""
RecognitionPipeline: loads a face model once and runs it per request.

Each call goes pixel buffer -> FramePreprocessor -> TensorEngine ->
ResultPostprocessor -> list of Recognition.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from ..common.config import load_config
from ..common.constants import EMBEDDING_DIM, SYSTEM_MODEL_DIR
from .accelerator import AcceleratorResolver, DelegateSpec
from .assets import AssetStore, DirectoryAssetStore
from .engine import TensorEngine
from .model_loader import LabelTable, ModelLoader
from .models import ModelConfig, Recognition
from .postprocess import ResultPostprocessor, ScratchBuffers
from .preprocess import FramePreprocessor

logger = logging.getLogger(__name__)


class RecognitionPipeline:
    """Face detector or face embedder bound to one model, label table and engine."""

    def __init__(
        self,
        config: ModelConfig,
        labels: LabelTable,
        engine: TensorEngine,
    ):
        """
        Assemble a pipeline from already-loaded parts. Use create() to load them.

        Raises:
            OutputShapeMismatch: If the model's outputs do not fit the model family
        """
        self.config = config
        self.labels = labels
        self.engine = engine

        self.preprocessor = FramePreprocessor(config)
        self.postprocessor = ResultPostprocessor(labels, config)
        self.input_tensor = self.preprocessor.allocate()
        self.scratch = ScratchBuffers(config)
        self.engine.validate_outputs(self.scratch.outputs)

        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        asset_store: Optional[AssetStore],
        model_filename: str,
        label_filename: str,
        input_size: int,
        is_quantized: bool,
        hw_acceleration: bool,
        use_enhanced_acceleration: bool,
        num_threads: int,
        embedding_size: int = EMBEDDING_DIM,
        system_dir: Union[str, Path] = SYSTEM_MODEL_DIR,
        resolver: Optional[AcceleratorResolver] = None,
    ) -> "RecognitionPipeline":
        """
        Load labels and model and build the inference engine.

        Args:
            asset_store: Bundled assets, looked up before system_dir
            model_filename: Model file name
            label_filename: Label file name
            input_size: Side of the square model input
            is_quantized: True for the uint8 detector, False for the float embedder
            hw_acceleration: Enable hardware acceleration (NNAPI/GPU)
            use_enhanced_acceleration: With hw_acceleration, use NNAPI instead of
                GPU. Without it, toggle XNNPACK
            num_threads: Threads for the CPU and XNNPACK backends
            embedding_size: Length of the embedding vector
            system_dir: Fallback directory for model and label files
            resolver: Backend resolver, defaults to one checking the runtime

        Raises:
            ResourceNotFound: If the model or label file cannot be found
            UnsupportedAcceleration: If the requested backend is unavailable
            EngineInitError: If the session cannot be built
        """
        config = ModelConfig.from_flags(
            input_size=input_size,
            is_quantized=is_quantized,
            hw_acceleration=hw_acceleration,
            use_enhanced_acceleration=use_enhanced_acceleration,
            num_threads=num_threads,
            embedding_size=embedding_size,
        )
        loader = ModelLoader(asset_store, system_dir)
        labels = loader.load_labels(label_filename)

        resolver = resolver or AcceleratorResolver()
        delegate: DelegateSpec = resolver.resolve_mode(config.acceleration)

        model = loader.load_model(model_filename)
        try:
            engine = TensorEngine(model, delegate, num_threads)
        except Exception:
            model.close()
            raise
        try:
            pipeline = cls(config, labels, engine)
        except Exception:
            engine.close()
            raise

        logger.info(
            "Pipeline ready: %s (%s, input %dx%d, backend %s)",
            model_filename,
            config.family.value,
            input_size,
            input_size,
            delegate.mode.value,
        )
        return pipeline

    @classmethod
    def from_config(
        cls,
        config: Union[None, str, Path, Dict[str, Any]] = None,
        resolver: Optional[AcceleratorResolver] = None,
    ) -> "RecognitionPipeline":
        """Build a pipeline from a YAML config file path or a settings dict."""
        if isinstance(config, dict):
            settings = load_config(overrides=config)
        else:
            settings = load_config(config)

        return cls.create(
            asset_store=DirectoryAssetStore(settings["ASSETS_DIR"]),
            model_filename=settings["MODEL_FILENAME"],
            label_filename=settings["LABEL_FILENAME"],
            input_size=int(settings["INPUT_SIZE"]),
            is_quantized=bool(settings["IS_QUANTIZED"]),
            hw_acceleration=bool(settings["HW_ACCELERATION"]),
            use_enhanced_acceleration=bool(settings["USE_ENHANCED_ACCELERATION"]),
            num_threads=int(settings["NUM_THREADS"]),
            embedding_size=int(settings["EMBEDDING_SIZE"]),
            system_dir=settings["SYSTEM_MODEL_DIR"],
            resolver=resolver,
        )

    def recognize(
        self, pixels: Union[Sequence[int], np.ndarray], width: int, height: int
    ) -> List[Recognition]:
        """
        Run the model on one square ARGB image of config.input_size pixels.

        Calls are serialized; the scratch buffers are shared between them.

        Returns:
            One embedding recognition for float models, or one recognition per
            detection slot for quantized models, unfiltered and unsorted

        Raises:
            InferenceError: If the forward pass or decoding fails
        """
        with self._lock:
            self.preprocessor.preprocess(pixels, width, height, self.input_tensor)
            self.scratch.reset()
            self.engine.run(self.input_tensor.array, self.scratch.outputs)
            return self.postprocessor.postprocess(self.scratch.outputs)

    def close(self):
        """Release the inference session and the mapped weights."""
        with self._lock:
            self.engine.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


def best_detection(results: Sequence[Recognition], min_score: float = 0.0) -> Optional[Recognition]:
    """Highest-scoring detection at or above min_score, or None."""
    candidates = [r for r in results if not r.has_embedding and r.score >= min_score]
    if not candidates:
        return None
    return max(candidates, key=lambda r: r.score)
