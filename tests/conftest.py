from unittest.mock import MagicMock

import numpy as np
import pytest

from face_id.pipeline.models import detection_output_shapes, embedding_output_shapes

LABELS = ["???", "face", "person", "background noise"]


def pack_argb(r, g, b, a=0xFF):
    """Pack one ARGB pixel."""
    return (a << 24) | (r << 16) | (g << 8) | b


def build_session(input_shape, output_shapes, results=None):
    """
    Build a MagicMock standing in for an onnxruntime.InferenceSession.

    Args:
        input_shape: Declared input shape
        output_shapes: Declared output shapes, in output order
        results: Arrays returned by run(), defaults to zeros of each shape
    """
    session = MagicMock()
    mock_input = MagicMock()
    mock_input.name = "input"
    mock_input.shape = list(input_shape)
    session.get_inputs.return_value = [mock_input]

    mock_outputs = []
    for i, shape in enumerate(output_shapes):
        mock_output = MagicMock()
        mock_output.name = f"output_{i}"
        mock_output.shape = list(shape)
        mock_outputs.append(mock_output)
    session.get_outputs.return_value = mock_outputs
    session.get_providers.return_value = ["CPUExecutionProvider"]

    if results is None:
        results = [
            np.zeros([d if isinstance(d, int) else 1 for d in shape], dtype=np.float32)
            for shape in output_shapes
        ]
    session.run.return_value = results
    return session


@pytest.fixture
def argb():
    return pack_argb


@pytest.fixture
def make_session():
    return build_session


@pytest.fixture
def label_file(tmp_path):
    """Writes a label file into a fresh asset directory."""
    assets = tmp_path / "assets"
    assets.mkdir()
    path = assets / "labelmap.txt"
    path.write_text("\n".join(LABELS) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def model_file(label_file):
    """Writes fake model weights next to the label file."""
    path = label_file.parent / "model.onnx"
    path.write_bytes(bytes(range(256)) * 4)
    return path


@pytest.fixture
def detection_outputs():
    """Raw detector outputs: ten slots with increasing class indices."""
    locations = np.zeros((1, 10, 4), dtype=np.float32)
    locations[0, 0] = [0.1, 0.2, 0.3, 0.4]
    for i in range(1, 10):
        locations[0, i] = [0.05 * i, 0.02 * i, 0.05 * i + 0.1, 0.02 * i + 0.1]
    classes = np.array([[i % 3 for i in range(10)]], dtype=np.float32)
    scores = np.array([[0.9, 0.01, 0.0, 0.5, 0.2, 0.7, 0.3, 0.05, 0.6, 0.4]], dtype=np.float32)
    num = np.array([10], dtype=np.float32)
    return [locations, classes, scores, num]


@pytest.fixture
def detection_session(detection_outputs):
    shapes = list(detection_output_shapes().values())
    return build_session((1, 300, 300, 3), shapes, detection_outputs)


@pytest.fixture
def embedding_session():
    embedding = np.linspace(-1.0, 1.0, 512, dtype=np.float32).reshape(1, 512)
    shapes = list(embedding_output_shapes().values())
    return build_session((1, 112, 112, 3), shapes, [embedding])


@pytest.fixture
def onnx_models(tmp_path):
    """
    Builds a tiny real detector and embedder with the onnx helper API.

    Returns a dict with the directory and the two model file names.
    """
    onnx = pytest.importorskip("onnx")
    from onnx import TensorProto, helper, numpy_helper

    size = 4
    model_dir = tmp_path / "models"
    model_dir.mkdir()

    # Embedder: flatten the float input and project it to 512 values.
    weights = np.random.default_rng(0).standard_normal((size * size * 3, 512)).astype(np.float32)
    embedder = helper.make_graph(
        [
            helper.make_node("Flatten", ["input"], ["flat"], axis=1),
            helper.make_node("MatMul", ["flat", "weights"], ["embedding"]),
        ],
        "embedder",
        [helper.make_tensor_value_info("input", TensorProto.FLOAT, [1, size, size, 3])],
        [helper.make_tensor_value_info("embedding", TensorProto.FLOAT, [1, 512])],
        [numpy_helper.from_array(weights, "weights")],
    )

    # Detector: constant boxes and classes, scores shifted by the input mean.
    locations = np.tile(np.array([0.1, 0.2, 0.3, 0.4], dtype=np.float32), (1, 10, 1))
    classes = np.zeros((1, 10), dtype=np.float32)
    base_scores = np.linspace(0.0, 0.9, 10, dtype=np.float32).reshape(1, 10)
    detector = helper.make_graph(
        [
            helper.make_node("Cast", ["input"], ["as_float"], to=TensorProto.FLOAT),
            helper.make_node("ReduceMean", ["as_float"], ["mean"], keepdims=0),
            helper.make_node("Mul", ["mean", "zero"], ["zeroed"]),
            helper.make_node("Add", ["base_scores", "zeroed"], ["scores"]),
            helper.make_node("Identity", ["base_locations"], ["locations"]),
            helper.make_node("Identity", ["base_classes"], ["classes"]),
            helper.make_node("Identity", ["base_num"], ["num_detections"]),
        ],
        "detector",
        [helper.make_tensor_value_info("input", TensorProto.UINT8, [1, size, size, 3])],
        [
            helper.make_tensor_value_info("locations", TensorProto.FLOAT, [1, 10, 4]),
            helper.make_tensor_value_info("classes", TensorProto.FLOAT, [1, 10]),
            helper.make_tensor_value_info("scores", TensorProto.FLOAT, [1, 10]),
            helper.make_tensor_value_info("num_detections", TensorProto.FLOAT, [1]),
        ],
        [
            numpy_helper.from_array(np.array(0.0, dtype=np.float32), "zero"),
            numpy_helper.from_array(base_scores, "base_scores"),
            numpy_helper.from_array(locations, "base_locations"),
            numpy_helper.from_array(classes, "base_classes"),
            numpy_helper.from_array(np.array([10.0], dtype=np.float32), "base_num"),
        ],
    )

    for name, graph in (("embedder.onnx", embedder), ("detector.onnx", detector)):
        model = helper.make_model(
            graph, opset_imports=[helper.make_opsetid("", 13)], ir_version=8
        )
        onnx.save(model, str(model_dir / name))

    (model_dir / "labelmap.txt").write_text("\n".join(LABELS) + "\n", encoding="utf-8")
    return {"dir": model_dir, "embedder": "embedder.onnx", "detector": "detector.onnx", "size": size}


@pytest.fixture
def labels():
    return list(LABELS)
