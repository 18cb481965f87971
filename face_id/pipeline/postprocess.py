"""
Raw output decoding for both model families.
"""

from typing import Dict, List, Mapping, Sequence

import numpy as np

from ..common.constants import EMBEDDING_LABEL, EMBEDDING_SCORE_SENTINEL, LABEL_OFFSET
from ..common.exceptions import InferenceError
from .models import (
    Box,
    ModelConfig,
    ModelFamily,
    Recognition,
    detection_output_shapes,
    embedding_output_shapes,
)

LOCATIONS, CLASSES, SCORES, NUM_DETECTIONS = 0, 1, 2, 3
EMBEDDINGS = 0


class ScratchBuffers:
    """Pre-allocated output arrays for one model family, indexed like the model outputs."""

    def __init__(self, config: ModelConfig):
        if config.family is ModelFamily.DETECTION:
            shapes = detection_output_shapes(config.num_detections)
        else:
            shapes = embedding_output_shapes(config.embedding_size)
        self.outputs: Dict[int, np.ndarray] = {
            index: np.zeros(shape, dtype=np.float32) for index, shape in shapes.items()
        }

    def reset(self):
        for buffer in self.outputs.values():
            buffer.fill(0)


class ResultPostprocessor:
    """Decoder bound to one pipeline's labels, input size and model family."""

    def __init__(self, labels: Sequence[str], config: ModelConfig):
        self.labels = labels
        self.input_size = config.input_size
        self.family = config.family

    def postprocess(self, raw_outputs: Mapping[int, np.ndarray]) -> List[Recognition]:
        return postprocess(raw_outputs, self.labels, self.input_size, self.family)


def postprocess(
    raw_outputs: Mapping[int, np.ndarray],
    labels: Sequence[str],
    input_size: int,
    family: ModelFamily,
) -> List[Recognition]:
    """
    Turn raw model outputs into recognitions.

    Args:
        raw_outputs: Model outputs by index
        labels: Label table, index 0 being the background class
        input_size: Side of the square model input, used to scale boxes
        family: Model family that produced the outputs

    Returns:
        One embedding recognition, or one recognition per detection slot
    """
    if family is ModelFamily.EMBEDDING:
        return decode_embedding(raw_outputs)
    return decode_detections(raw_outputs, labels, input_size)


def decode_embedding(raw_outputs: Mapping[int, np.ndarray]) -> List[Recognition]:
    """Wrap the embedding vector in a single recognition."""
    embedding = np.array(raw_outputs[EMBEDDINGS][0], dtype=np.float32)
    return [
        Recognition(
            id="0",
            label=EMBEDDING_LABEL,
            score=EMBEDDING_SCORE_SENTINEL,
            box=Box(),
            embedding=embedding,
        )
    ]


def decode_detections(
    raw_outputs: Mapping[int, np.ndarray], labels: Sequence[str], input_size: int
) -> List[Recognition]:
    """
    Decode every detection slot, in model order and without score filtering.

    Locations come as (y1, x1, y2, x2) fractions and are returned as
    (x1, y1, x2, y2) pixels. Class indices are offset by one into the labels.
    """
    locations = raw_outputs[LOCATIONS][0]
    classes = raw_outputs[CLASSES][0]
    scores = raw_outputs[SCORES][0]

    recognitions = []
    for i in range(len(locations)):
        y1, x1, y2, x2 = (float(v) * input_size for v in locations[i])
        if not np.isfinite(classes[i]):
            raise InferenceError(f"Class index in slot {i} is not a number: {classes[i]}")
        label_index = int(classes[i]) + LABEL_OFFSET
        if not 0 <= label_index < len(labels):
            raise InferenceError(
                f"Class index {int(classes[i])} in slot {i} is outside the label table "
                f"({len(labels)} labels)"
            )
        recognitions.append(
            Recognition(
                id=str(i),
                label=labels[label_index],
                score=float(scores[i]),
                box=Box(left=x1, top=y1, right=x2, bottom=y2),
            )
        )
    return recognitions
