"""
Exception hierarchy for the face identification pipeline.
"""


class FaceIdError(Exception):
    """Base class for all pipeline errors."""


class ResourceNotFound(FaceIdError, FileNotFoundError):
    """A model or label file is missing from both the asset store and the system directory."""

    def __init__(self, name: str, system_dir: str):
        self.name = name
        self.system_dir = system_dir
        super().__init__(f"{name} not found in assets or {system_dir}")


class UnsupportedAcceleration(FaceIdError):
    """The requested hardware delegate is not available in this runtime."""


class EngineInitError(FaceIdError):
    """The inference session could not be built."""


class OutputShapeMismatch(EngineInitError):
    """A pre-allocated output buffer does not match the model's output shape."""


class InferenceError(FaceIdError):
    """A forward pass or its decoding failed. The pipeline stays usable."""
