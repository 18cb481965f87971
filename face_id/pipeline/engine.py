"""
onnxruntime session wrapper.

Owns the inference session built from memory-mapped weights and runs one
synchronous forward pass per call into caller-owned output buffers.
"""

import logging
import time
from typing import List, Mapping, Tuple

import numpy as np
import onnxruntime as ort

from ..common.exceptions import EngineInitError, InferenceError, OutputShapeMismatch
from .accelerator import DelegateSpec
from .model_loader import MappedModel

logger = logging.getLogger(__name__)


class TensorEngine:
    """Single-input, multi-output inference session."""

    def __init__(self, model: MappedModel, delegate: DelegateSpec, num_threads: int):
        """
        Build the inference session.

        Args:
            model: Memory-mapped model weights, owned by the engine from now on
            delegate: Resolved execution backend
            num_threads: Intra-op threads for the CPU and XNNPACK backends

        Raises:
            EngineInitError: If the session cannot be built
        """
        self.model = model
        self.delegate = delegate
        self.num_threads = num_threads

        options = ort.SessionOptions()
        options.intra_op_num_threads = num_threads
        options.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        if delegate.use_xnnpack:
            # XNNPACK owns its own thread pool.
            options.add_session_config_entry("session.intra_op.allow_spinning", "0")

        start = time.time()
        try:
            self.session = ort.InferenceSession(
                model.read_bytes(), options, providers=delegate.providers(num_threads)
            )
            inputs = self.session.get_inputs()
            self._input_name = inputs[0].name
            self._input_shape = tuple(inputs[0].shape)
            self._output_names = [o.name for o in self.session.get_outputs()]
            self._output_shapes = [tuple(o.shape) for o in self.session.get_outputs()]
        except Exception as exc:
            raise EngineInitError(f"Failed to build inference session: {exc}") from exc

        active = self.session.get_providers()
        missing = [name for name in delegate.provider_names() if name not in active]
        if missing:
            logger.warning(
                "Requested providers %s not active for %s backend, running on %s",
                ",".join(missing),
                delegate.mode.value,
                ",".join(active),
            )

        logger.info(
            "Inference session ready in %.2fs (providers=%s, threads=%d)",
            time.time() - start,
            ",".join(self.session.get_providers()),
            num_threads,
        )

    @property
    def input_shape(self) -> Tuple:
        return self._input_shape

    @property
    def output_shapes(self) -> List[Tuple]:
        return list(self._output_shapes)

    def validate_outputs(self, outputs: Mapping[int, np.ndarray]):
        """
        Check pre-allocated output buffers against the model's output shapes.

        Symbolic dimensions are not checked.

        Raises:
            OutputShapeMismatch: If an index is out of range or a shape differs
        """
        for index, buffer in outputs.items():
            if not 0 <= index < len(self._output_shapes):
                raise OutputShapeMismatch(
                    f"Output {index} requested but model has {len(self._output_shapes)} outputs"
                )
            declared = self._output_shapes[index]
            if not _shape_matches(declared, buffer.shape):
                raise OutputShapeMismatch(
                    f"Output {index} ({self._output_names[index]}) has shape {declared}, "
                    f"buffer has {buffer.shape}"
                )

    def run(self, input_tensor: np.ndarray, outputs: Mapping[int, np.ndarray]):
        """
        Run one forward pass, filling each ``outputs[i]`` with model output ``i``.

        Blocks until the pass completes.

        Raises:
            InferenceError: If the forward pass fails
            OutputShapeMismatch: If a result does not fit its buffer
        """
        names = [self._output_names[i] for i in outputs]
        try:
            results = self.session.run(names, {self._input_name: input_tensor})
        except Exception as exc:
            raise InferenceError(f"Inference failed: {exc}") from exc

        for (index, buffer), result in zip(outputs.items(), results):
            result = np.asarray(result)
            if result.size != buffer.size:
                raise OutputShapeMismatch(
                    f"Output {index} produced shape {result.shape}, buffer has {buffer.shape}"
                )
            np.copyto(buffer, result.reshape(buffer.shape), casting="unsafe")

    def close(self):
        self.session = None
        self.model.close()


def _shape_matches(declared, actual) -> bool:
    if len(declared) != len(actual):
        return False
    return all(not isinstance(d, int) or d == a for d, a in zip(declared, actual))
