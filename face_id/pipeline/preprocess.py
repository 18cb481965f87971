"""
Pixel buffer to input tensor conversion.
"""

from typing import Optional, Sequence, Union

import numpy as np

from ..common.constants import CHANNELS, FIRST_CHANNEL_MEAN, SECOND_CHANNEL_MEAN, THIRD_CHANNEL_MEAN
from .models import ModelConfig, ModelFamily

# Subtracted from the B, G, R values in write order.
CHANNEL_MEANS = np.array([THIRD_CHANNEL_MEAN, SECOND_CHANNEL_MEAN, FIRST_CHANNEL_MEAN], dtype=np.float32)


class InputTensor:
    """
    Fixed-size input buffer, refilled in place on every call.

    ``data`` is the raw byte buffer; ``array`` is a zero-copy view of it in
    the shape and dtype the model expects, in native byte order.
    """

    def __init__(self, config: ModelConfig):
        self.shape = config.input_shape
        self.dtype = config.family.input_dtype
        self.data = bytearray(config.input_nbytes)
        self.array = np.frombuffer(self.data, dtype=self.dtype).reshape(self.shape)

    @property
    def nbytes(self) -> int:
        return len(self.data)

    def tobytes(self) -> bytes:
        return bytes(self.data)


class FramePreprocessor:
    """Writes ARGB pixels into an InputTensor in the layout of the model family."""

    def __init__(self, config: ModelConfig):
        self.config = config
        self.family = config.family

    def allocate(self) -> InputTensor:
        return InputTensor(self.config)

    def preprocess(
        self,
        pixels: Union[Sequence[int], np.ndarray],
        width: int,
        height: int,
        tensor: Optional[InputTensor] = None,
    ) -> InputTensor:
        """
        Fill an input tensor from a row-major ARGB pixel buffer.

        The caller must pass a square image of ``config.input_size`` pixels;
        other sizes are not detected here.

        Args:
            pixels: width * height ARGB values (0xAARRGGBB)
            width: Image width
            height: Image height
            tensor: Buffer to refill. A new one is allocated if omitted

        Returns:
            The filled tensor. Quantized models get R, G, B bytes; float models
            get mean-centered B, G, R float32 values
        """
        if tensor is None:
            tensor = self.allocate()

        argb = np.asarray(pixels).astype(np.uint32, copy=False).reshape(height * width)
        rgb = np.empty((argb.size, CHANNELS), dtype=np.uint8)
        rgb[:, 0] = (argb >> 16) & 0xFF
        rgb[:, 1] = (argb >> 8) & 0xFF
        rgb[:, 2] = argb & 0xFF

        out = tensor.array.reshape(-1, CHANNELS)
        if self.family is ModelFamily.DETECTION:
            out[...] = rgb
        else:
            np.subtract(rgb[:, ::-1], CHANNEL_MEANS, out=out, dtype=np.float32)
        return tensor
