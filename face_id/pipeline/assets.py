"""
Bundled asset stores.

An asset store is the first lookup tier for model and label files. It can
report the byte range of an asset inside a larger container file, so that
model weights can be memory-mapped in place.
"""

import io
import struct
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol, Union

# Local file header: signature, versions, flags, method, times, crc, sizes,
# then the two variable-length field sizes.
_LOCAL_HEADER = struct.Struct("<4s5HL2L2H")
_LOCAL_HEADER_SIGNATURE = b"PK\x03\x04"


@dataclass(frozen=True)
class AssetDescriptor:
    """Location of an asset's bytes: file path, start offset and length."""

    path: Path
    offset: int
    length: int


class AssetStore(Protocol):
    """Protocol for bundled asset stores."""

    def open_fd(self, name: str) -> AssetDescriptor:
        """
        Locate an asset's raw bytes.

        Raises:
            OSError: If the asset is absent or cannot be mapped in place
        """
        ...

    def open(self, name: str) -> BinaryIO:
        """
        Open an asset as a binary stream.

        Raises:
            OSError: If the asset is absent
        """
        ...


class DirectoryAssetStore:
    """Assets stored as plain files under a root directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _resolve(self, name: str) -> Path:
        path = self.root / name
        if not path.is_file():
            raise FileNotFoundError(f"Asset not found: {path}")
        return path

    def open_fd(self, name: str) -> AssetDescriptor:
        path = self._resolve(name)
        return AssetDescriptor(path=path, offset=0, length=path.stat().st_size)

    def open(self, name: str) -> BinaryIO:
        return open(self._resolve(name), "rb")


class ZipAssetStore:
    """
    Assets packed in a zip bundle.

    Only entries stored without compression can be located with open_fd;
    compressed entries can still be read through open.
    """

    def __init__(self, archive: Union[str, Path], prefix: str = ""):
        self.archive = Path(archive)
        self.prefix = prefix

    def _info(self, zf: zipfile.ZipFile, name: str) -> zipfile.ZipInfo:
        try:
            return zf.getinfo(self.prefix + name)
        except KeyError as exc:
            raise FileNotFoundError(f"Asset not found in {self.archive}: {name}") from exc

    def open_fd(self, name: str) -> AssetDescriptor:
        with zipfile.ZipFile(self.archive) as zf:
            info = self._info(zf, name)
        if info.compress_type != zipfile.ZIP_STORED:
            raise OSError(f"Asset {name} is compressed and cannot be memory-mapped")

        with open(self.archive, "rb") as f:
            f.seek(info.header_offset)
            header = f.read(_LOCAL_HEADER.size)
        fields = _LOCAL_HEADER.unpack(header)
        if fields[0] != _LOCAL_HEADER_SIGNATURE:
            raise OSError(f"Bad local header for {name} in {self.archive}")
        name_len, extra_len = fields[-2], fields[-1]
        offset = info.header_offset + _LOCAL_HEADER.size + name_len + extra_len
        return AssetDescriptor(path=self.archive, offset=offset, length=info.file_size)

    def open(self, name: str) -> BinaryIO:
        with zipfile.ZipFile(self.archive) as zf:
            info = self._info(zf, name)
            return io.BytesIO(zf.read(info))
