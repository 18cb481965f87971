"""
Execution backend selection.

Maps the hardware-acceleration flags onto onnxruntime execution providers.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import onnxruntime as ort

from ..common.exceptions import UnsupportedAcceleration
from .models import AccelerationMode

logger = logging.getLogger(__name__)

CPU_PROVIDER = "CPUExecutionProvider"
XNNPACK_PROVIDER = "XnnpackExecutionProvider"
NNAPI_PROVIDER = "NnapiExecutionProvider"
GPU_PROVIDER = "CUDAExecutionProvider"

_DELEGATE_PROVIDERS = {
    AccelerationMode.NNAPI: NNAPI_PROVIDER,
    AccelerationMode.GPU: GPU_PROVIDER,
}


def gpu_supported() -> bool:
    """Whether this onnxruntime build can create the GPU backend."""
    return GPU_PROVIDER in ort.get_available_providers()


@dataclass(frozen=True)
class DelegateSpec:
    """
    Resolved execution backend.

    Args:
        mode: Hardware delegate to request (NONE, NNAPI or GPU), or XNNPACK
            when only the CPU fast path is enabled
        use_xnnpack: Whether XNNPACK runs as the CPU backend
    """

    mode: AccelerationMode
    use_xnnpack: bool

    @property
    def delegate(self) -> Optional[str]:
        return _DELEGATE_PROVIDERS.get(self.mode)

    def providers(self, num_threads: int = 1) -> List:
        """Ordered onnxruntime provider list, always ending with the CPU provider."""
        providers = []
        if self.delegate is not None:
            providers.append(self.delegate)
        if self.use_xnnpack:
            providers.append((XNNPACK_PROVIDER, {"intra_op_num_threads": str(num_threads)}))
        providers.append(CPU_PROVIDER)
        return providers

    def provider_names(self) -> List[str]:
        return [p[0] if isinstance(p, tuple) else p for p in self.providers()]


class AcceleratorResolver:
    """
    Decides which backend to request.

    A resolver built with ``gpu_enabled=False`` excludes the GPU backend:
    asking for it raises UnsupportedAcceleration instead of downgrading.
    """

    def __init__(self, gpu_enabled: Optional[bool] = None):
        self.gpu_enabled = gpu_supported() if gpu_enabled is None else gpu_enabled

    def resolve(self, hw_acceleration: bool, use_enhanced: bool) -> DelegateSpec:
        """
        Resolve the acceleration flags to a DelegateSpec.

        Args:
            hw_acceleration: Request a hardware delegate (NNAPI or GPU)
            use_enhanced: With hw_acceleration, pick NNAPI over GPU. Without it,
                toggle XNNPACK as the CPU backend

        Returns:
            The resolved DelegateSpec

        Raises:
            UnsupportedAcceleration: If the GPU backend was requested but is excluded
        """
        if not hw_acceleration:
            mode = AccelerationMode.XNNPACK if use_enhanced else AccelerationMode.NONE
            return DelegateSpec(mode=mode, use_xnnpack=use_enhanced)

        if use_enhanced:
            return DelegateSpec(mode=AccelerationMode.NNAPI, use_xnnpack=True)

        return DelegateSpec(mode=self._acquire_gpu(), use_xnnpack=True)

    def resolve_mode(self, mode: AccelerationMode) -> DelegateSpec:
        """Resolve an AccelerationMode, as stored in a ModelConfig."""
        flags: Dict[AccelerationMode, tuple] = {
            AccelerationMode.NONE: (False, False),
            AccelerationMode.XNNPACK: (False, True),
            AccelerationMode.NNAPI: (True, True),
            AccelerationMode.GPU: (True, False),
        }
        return self.resolve(*flags[mode])

    def _acquire_gpu(self) -> AccelerationMode:
        if not self.gpu_enabled:
            raise UnsupportedAcceleration(
                "compiled without GPU support, can't create GPU delegate"
            )
        logger.debug("Using GPU provider %s", GPU_PROVIDER)
        return AccelerationMode.GPU
