"""
Image helpers for feeding OpenCV images to the recognition pipeline.
"""

from typing import Tuple

import cv2
import numpy as np

from ..pipeline.models import Box


def image_to_argb(image: np.ndarray, size: int) -> Tuple[np.ndarray, int, int]:
    """
    Resize a BGR image to a square and pack it as ARGB pixels.

    Args:
        image: H x W x 3 BGR uint8 image, as returned by cv2.imread
        size: Side of the output square

    Returns:
        (pixels, width, height) with pixels as a flat uint32 array in
        row-major order, alpha set to 0xFF
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an HxWx3 BGR image, got shape {image.shape}")
    resized = cv2.resize(image, (size, size), interpolation=cv2.INTER_LINEAR)
    rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB).astype(np.uint32)
    argb = (
        np.uint32(0xFF000000)
        | (rgb[:, :, 0] << np.uint32(16))
        | (rgb[:, :, 1] << np.uint32(8))
        | rgb[:, :, 2]
    )
    return argb.reshape(-1), size, size


def crop_box(image: np.ndarray, box: Box, input_size: int, padding_factor: float = 0.0) -> np.ndarray:
    """
    Crop a detection box, given in model input pixels, out of the source image.

    Args:
        image: Source image the model input was resized from
        box: Detection box in input_size x input_size coordinates
        input_size: Side of the model input
        padding_factor: Extra margin as a fraction of the box size
    """
    h, w = image.shape[:2]
    sx, sy = w / input_size, h / input_size
    pad_w = box.width * padding_factor
    pad_h = box.height * padding_factor

    x1 = max(0, int((box.left - pad_w) * sx))
    y1 = max(0, int((box.top - pad_h) * sy))
    x2 = min(w, int((box.right + pad_w) * sx))
    y2 = min(h, int((box.bottom + pad_h) * sy))
    return image[y1:y2, x1:x2]
