"""
On-device face identification.

Runs quantized face detectors and floating-point face embedding models
through onnxruntime:
- pipeline: model loading, accelerator selection, pre/post-processing
- common: constants, configuration, exceptions and image helpers
"""

from .pipeline.recognizer import RecognitionPipeline
from .pipeline.models import Box, ModelConfig, ModelFamily, Recognition

__all__ = ["RecognitionPipeline", "Box", "ModelConfig", "ModelFamily", "Recognition"]
