"""
Model and label loading with a two-tier lookup.

Files are looked up in the bundled asset store first and in the system
model directory second. Model weights are memory-mapped read-only.
"""

import io
import logging
import mmap
import os
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Sequence, Union

from ..common.constants import SYSTEM_MODEL_DIR
from ..common.exceptions import ResourceNotFound
from .assets import AssetDescriptor, AssetStore

logger = logging.getLogger(__name__)


class MappedModel:
    """
    Read-only memory mapping of model weights.

    The mapping starts at the allocation boundary at or below ``offset``;
    ``read_bytes`` only returns the ``length`` bytes starting at ``offset``.
    """

    def __init__(self, path: Union[str, Path], offset: int, length: int):
        if length <= 0:
            raise ValueError(f"Cannot map empty model {path}")
        self.path = Path(path)
        self.offset = offset
        self.length = length

        aligned = offset - offset % mmap.ALLOCATIONGRANULARITY
        self._delta = offset - aligned
        with open(self.path, "rb") as f:
            self._mmap = mmap.mmap(
                f.fileno(), self._delta + length, access=mmap.ACCESS_READ, offset=aligned
            )

    @property
    def closed(self) -> bool:
        return self._mmap.closed

    def read_bytes(self) -> bytes:
        return self._mmap[self._delta : self._delta + self.length]

    def __len__(self) -> int:
        return self.length

    def close(self):
        self._mmap.close()

    def __repr__(self):
        return f"MappedModel(path={str(self.path)!r}, offset={self.offset}, length={self.length})"


class LabelTable(Sequence[str]):
    """Ordered label strings. Index 0 is the background class for detectors."""

    def __init__(self, labels: List[str]):
        self._labels = list(labels)

    def __getitem__(self, index):
        return self._labels[index]

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[str]:
        return iter(self._labels)

    def __repr__(self):
        return f"LabelTable({self._labels!r})"


class ModelLoader:
    """Resolves model and label files from the asset store or the system directory."""

    def __init__(
        self,
        asset_store: Optional[AssetStore] = None,
        system_dir: Union[str, Path] = SYSTEM_MODEL_DIR,
    ):
        self.asset_store = asset_store
        self.system_dir = Path(system_dir)

    def _system_file(self, name: str) -> Path:
        path = self.system_dir / name
        if path.is_file() and os.access(path, os.R_OK):
            return path
        raise ResourceNotFound(name, str(self.system_dir))

    def _locate(self, name: str) -> AssetDescriptor:
        if self.asset_store is not None:
            try:
                return self.asset_store.open_fd(name)
            except (OSError, KeyError) as exc:
                logger.debug("Asset %s unavailable (%s), trying %s", name, exc, self.system_dir)
        path = self._system_file(name)
        return AssetDescriptor(path=path, offset=0, length=path.stat().st_size)

    def _open(self, name: str) -> BinaryIO:
        if self.asset_store is not None:
            try:
                return self.asset_store.open(name)
            except (OSError, KeyError) as exc:
                logger.debug("Asset %s unavailable (%s), trying %s", name, exc, self.system_dir)
        return open(self._system_file(name), "rb")

    def load_model(self, name: str) -> MappedModel:
        """
        Memory-map a model file.

        Args:
            name: Model file name

        Returns:
            MappedModel covering the asset's declared byte range

        Raises:
            ResourceNotFound: If neither lookup tier has a readable file
        """
        descriptor = self._locate(name)
        try:
            model = MappedModel(descriptor.path, descriptor.offset, descriptor.length)
        except (OSError, ValueError) as exc:
            raise ResourceNotFound(name, str(self.system_dir)) from exc
        logger.info("Mapped model %s (%d bytes at offset %d)", name, model.length, model.offset)
        return model

    def load_labels(self, name: str) -> LabelTable:
        """
        Read a label file, one label per line.

        Raises:
            ResourceNotFound: If neither lookup tier has a readable file
        """
        raw = self._open(name)
        with io.TextIOWrapper(raw, encoding="utf-8", errors="replace", newline="") as text:
            labels = [_strip_terminator(line) for line in text]
        logger.info("Loaded %d labels from %s", len(labels), name)
        return LabelTable(labels)


def _strip_terminator(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith(("\n", "\r")):
        return line[:-1]
    return line
