"""
Data types shared by the face identification pipeline.

Defines the model configuration, the model families and the recognition
results handed back to callers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from ..common.constants import BOX_COORDINATES, CHANNELS, EMBEDDING_DIM, NUM_DETECTIONS


class AccelerationMode(Enum):
    """Execution backend requested for the inference session."""

    NONE = "none"
    XNNPACK = "xnnpack"
    NNAPI = "nnapi"
    GPU = "gpu"


class ModelFamily(Enum):
    """Model families supported by the pipeline."""

    DETECTION = "detection"  # quantized multi-object detector
    EMBEDDING = "embedding"  # floating-point embedding extractor

    @classmethod
    def from_quantized(cls, is_quantized: bool) -> "ModelFamily":
        return cls.DETECTION if is_quantized else cls.EMBEDDING

    @property
    def bytes_per_channel(self) -> int:
        return 1 if self is ModelFamily.DETECTION else 4

    @property
    def input_dtype(self) -> np.dtype:
        return np.dtype(np.uint8) if self is ModelFamily.DETECTION else np.dtype(np.float32)


@dataclass(frozen=True)
class ModelConfig:
    """
    Fixed parameters of a loaded model.

    Args:
        input_size: Side of the square input image in pixels
        is_quantized: True for the uint8 detector, False for the float embedder
        num_threads: Intra-op threads used by the CPU and XNNPACK backends
        acceleration: Requested execution backend
        embedding_size: Length of the embedding vector
        num_detections: Number of detection slots emitted by the detector
    """

    input_size: int
    is_quantized: bool
    num_threads: int = 1
    acceleration: AccelerationMode = AccelerationMode.NONE
    embedding_size: int = EMBEDDING_DIM
    num_detections: int = NUM_DETECTIONS

    def __post_init__(self):
        if self.input_size <= 0:
            raise ValueError(f"input_size must be positive, got {self.input_size}")
        if self.num_threads <= 0:
            raise ValueError(f"num_threads must be positive, got {self.num_threads}")
        if self.embedding_size <= 0:
            raise ValueError(f"embedding_size must be positive, got {self.embedding_size}")

    @classmethod
    def from_flags(
        cls,
        input_size: int,
        is_quantized: bool,
        hw_acceleration: bool,
        use_enhanced_acceleration: bool,
        num_threads: int,
        embedding_size: int = EMBEDDING_DIM,
    ) -> "ModelConfig":
        """Build a config from the boolean acceleration flags."""
        if hw_acceleration:
            mode = AccelerationMode.NNAPI if use_enhanced_acceleration else AccelerationMode.GPU
        elif use_enhanced_acceleration:
            mode = AccelerationMode.XNNPACK
        else:
            mode = AccelerationMode.NONE
        return cls(
            input_size=input_size,
            is_quantized=is_quantized,
            num_threads=num_threads,
            acceleration=mode,
            embedding_size=embedding_size,
        )

    @property
    def family(self) -> ModelFamily:
        return ModelFamily.from_quantized(self.is_quantized)

    @property
    def input_shape(self) -> Tuple[int, int, int, int]:
        return (1, self.input_size, self.input_size, CHANNELS)

    @property
    def input_nbytes(self) -> int:
        return self.input_size * self.input_size * CHANNELS * self.family.bytes_per_channel


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle in input-pixel coordinates. Box() is empty."""

    left: float = 0.0
    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.left >= self.right or self.top >= self.bottom

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def as_list(self):
        return [self.left, self.top, self.right, self.bottom]


@dataclass
class Recognition:
    """
    One result of a recognition call.

    Detection results carry a label, a raw score and a box. Embedding results
    carry the embedding vector, with a placeholder label and score.
    """

    id: str
    label: str
    score: float
    box: Box = field(default_factory=Box)
    embedding: Optional[np.ndarray] = None

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    def __eq__(self, other):
        if not isinstance(other, Recognition):
            return NotImplemented
        if (self.id, self.label, self.score, self.box) != (
            other.id,
            other.label,
            other.score,
            other.box,
        ):
            return False
        if self.embedding is None or other.embedding is None:
            return self.embedding is None and other.embedding is None
        return np.array_equal(self.embedding, other.embedding)


def detection_output_shapes(num_detections: int = NUM_DETECTIONS):
    """Output shapes of the detector: locations, classes, scores, count."""
    return {
        0: (1, num_detections, BOX_COORDINATES),
        1: (1, num_detections),
        2: (1, num_detections),
        3: (1,),
    }


def embedding_output_shapes(embedding_size: int = EMBEDDING_DIM):
    """Output shape of the embedding extractor."""
    return {0: (1, embedding_size)}
