import zipfile

import pytest

from face_id.common.exceptions import ResourceNotFound
from face_id.pipeline.assets import DirectoryAssetStore, ZipAssetStore
from face_id.pipeline.model_loader import MappedModel, ModelLoader


@pytest.fixture
def system_dir(tmp_path):
    path = tmp_path / "system" / "etc" / "face"
    path.mkdir(parents=True)
    return path


def test_load_model_from_asset_store(model_file, system_dir):
    loader = ModelLoader(DirectoryAssetStore(model_file.parent), system_dir)

    model = loader.load_model("model.onnx")
    try:
        assert model.offset == 0
        assert len(model) == model_file.stat().st_size
        assert model.read_bytes() == model_file.read_bytes()
    finally:
        model.close()
    assert model.closed


def test_load_model_falls_back_to_system_dir(tmp_path, system_dir):
    weights = b"\x08\x01" * 5000
    (system_dir / "mobile_face_net.onnx").write_bytes(weights)
    empty_assets = tmp_path / "empty_assets"
    empty_assets.mkdir()
    loader = ModelLoader(DirectoryAssetStore(empty_assets), system_dir)

    model = loader.load_model("mobile_face_net.onnx")
    try:
        assert model.offset == 0
        assert model.length == len(weights)
        assert model.read_bytes() == weights
    finally:
        model.close()


def test_load_model_without_asset_store(system_dir):
    (system_dir / "detect.onnx").write_bytes(b"abc")
    model = ModelLoader(None, system_dir).load_model("detect.onnx")
    assert model.length == 3
    model.close()


def test_load_model_missing_everywhere(tmp_path, system_dir):
    loader = ModelLoader(DirectoryAssetStore(tmp_path), system_dir)

    with pytest.raises(ResourceNotFound) as excinfo:
        loader.load_model("missing.onnx")
    assert "missing.onnx" in str(excinfo.value)
    assert str(system_dir) in str(excinfo.value)
    # Callers catching FileNotFoundError also see it.
    assert isinstance(excinfo.value, FileNotFoundError)


def test_load_model_from_zip_honors_entry_range(tmp_path, system_dir):
    weights = bytes(range(256)) * 40
    archive = tmp_path / "bundle.zip"
    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_STORED) as zf:
        zf.writestr("assets/readme.txt", "padding before the model " * 7)
        zf.writestr("assets/model.onnx", weights)

    loader = ModelLoader(ZipAssetStore(archive, prefix="assets/"), system_dir)
    model = loader.load_model("model.onnx")
    try:
        assert model.offset > 0
        assert model.length == len(weights)
        assert model.read_bytes() == weights
    finally:
        model.close()


def test_compressed_zip_entry_falls_back(tmp_path, system_dir):
    archive = tmp_path / "bundle.zip"
    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("model.onnx", b"compressed" * 100)
    (system_dir / "model.onnx").write_bytes(b"system copy")

    model = ModelLoader(ZipAssetStore(archive), system_dir).load_model("model.onnx")
    assert model.read_bytes() == b"system copy"
    model.close()


def test_mapped_model_unaligned_offset(tmp_path):
    path = tmp_path / "blob.bin"
    path.write_bytes(bytes(range(256)) * 64)

    model = MappedModel(path, offset=1001, length=77)
    assert model.read_bytes() == (bytes(range(256)) * 64)[1001:1078]
    model.close()


def test_mapped_model_rejects_empty(tmp_path):
    path = tmp_path / "empty.onnx"
    path.write_bytes(b"")
    with pytest.raises(ValueError):
        MappedModel(path, 0, 0)


def test_load_labels_preserves_order_and_whitespace(tmp_path, system_dir):
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "labels.txt").write_bytes("???\n face \r\nZoë\n\nlast".encode("utf-8"))

    labels = ModelLoader(DirectoryAssetStore(assets), system_dir).load_labels("labels.txt")

    assert list(labels) == ["???", " face ", "Zoë", "", "last"]
    assert labels[1] == " face "
    assert len(labels) == 5


def test_load_labels_replaces_invalid_utf8(tmp_path, system_dir):
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "labels.txt").write_bytes(b"???\nfa\xffce\n")

    labels = ModelLoader(DirectoryAssetStore(assets), system_dir).load_labels("labels.txt")

    assert list(labels) == ["???", "fa\ufffdce"]


def test_load_labels_falls_back_to_system_dir(tmp_path, system_dir, labels):
    (system_dir / "labelmap.txt").write_text("\n".join(labels) + "\n", encoding="utf-8")

    table = ModelLoader(DirectoryAssetStore(tmp_path), system_dir).load_labels("labelmap.txt")
    assert list(table) == labels


def test_load_labels_from_zip(tmp_path, system_dir):
    archive = tmp_path / "bundle.zip"
    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("labelmap.txt", "???\nface\n")

    table = ModelLoader(ZipAssetStore(archive), system_dir).load_labels("labelmap.txt")
    assert list(table) == ["???", "face"]


def test_load_labels_missing_everywhere(tmp_path, system_dir):
    with pytest.raises(ResourceNotFound):
        ModelLoader(DirectoryAssetStore(tmp_path), system_dir).load_labels("labelmap.txt")
