# tests/conftest.py
"""
Pytest configuration and shared fixtures for ortrunner tests.

Models are authored with ``onnx.helper`` so the suite needs no downloads.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from pathlib import Path
from typing import Iterator

import numpy as np
import onnx
import pytest
from onnx import TensorProto, helper, numpy_helper

from ortrunner import Environment

OPSET = 13
NUM_CLASSES = 1000


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------


def _save_model(graph, path: Path) -> Path:
    model = helper.make_model(
        graph, opset_imports=[helper.make_opsetid("", OPSET)], producer_name="ortrunner-tests"
    )
    # Keep the IR version loadable by older ONNX Runtime releases
    model.ir_version = 8
    onnx.checker.check_model(model)
    onnx.save(model, str(path))
    return path


def classifier_weights():
    rng = np.random.default_rng(0)
    weight = rng.standard_normal((NUM_CLASSES, 3, 1, 1)).astype(np.float32)
    bias = rng.standard_normal(NUM_CLASSES).astype(np.float32)
    return weight, bias


def expected_classifier_output(x: np.ndarray) -> np.ndarray:
    """Reference for the classifier model: 1x1 conv followed by global average pool."""
    weight, bias = classifier_weights()
    channel_means = x.mean(axis=(2, 3), dtype=np.float64)  # (1, 3)
    scores = channel_means @ weight[:, :, 0, 0].T.astype(np.float64) + bias
    return scores.reshape(1, NUM_CLASSES, 1, 1)


def _build_classifier(path: Path) -> Path:
    """SqueezeNet-shaped signature: [1,3,224,224] -> [1,1000,1,1]."""
    weight, bias = classifier_weights()
    graph = helper.make_graph(
        [
            helper.make_node("Conv", ["data_0", "conv_w", "conv_b"], ["conv_out"]),
            helper.make_node("GlobalAveragePool", ["conv_out"], ["softmaxout_1"]),
        ],
        "classifier",
        [helper.make_tensor_value_info("data_0", TensorProto.FLOAT, [1, 3, 224, 224])],
        [
            helper.make_tensor_value_info(
                "softmaxout_1", TensorProto.FLOAT, [1, NUM_CLASSES, 1, 1]
            )
        ],
        initializer=[
            numpy_helper.from_array(weight, "conv_w"),
            numpy_helper.from_array(bias, "conv_b"),
        ],
    )
    return _save_model(graph, path)


def dense_weights():
    weight = np.arange(12, dtype=np.float32).reshape(4, 3) / 10.0
    bias = np.array([0.5, -1.0, 2.0], dtype=np.float32)
    return weight, bias


def _build_dense(path: Path) -> Path:
    """x["batch", 4] @ W[4, 3] + b -> y["batch", 3]."""
    weight, bias = dense_weights()
    graph = helper.make_graph(
        [
            helper.make_node("MatMul", ["x", "w"], ["xw"]),
            helper.make_node("Add", ["xw", "b"], ["y"]),
        ],
        "dense",
        [helper.make_tensor_value_info("x", TensorProto.FLOAT, ["batch", 4])],
        [helper.make_tensor_value_info("y", TensorProto.FLOAT, ["batch", 3])],
        initializer=[
            numpy_helper.from_array(weight, "w"),
            numpy_helper.from_array(bias, "b"),
        ],
    )
    return _save_model(graph, path)


def _build_nonzero(path: Path) -> Path:
    """x[2, 3] -> indices of non-zero entries as float, y[2, ?].

    The second output dimension depends on the values in x, so ONNX Runtime
    cannot report it before running.
    """
    graph = helper.make_graph(
        [
            helper.make_node("NonZero", ["x"], ["idx"]),
            helper.make_node("Cast", ["idx"], ["y"], to=TensorProto.FLOAT),
        ],
        "nonzero",
        [helper.make_tensor_value_info("x", TensorProto.FLOAT, [2, 3])],
        [helper.make_tensor_value_info("y", TensorProto.FLOAT, [2, None])],
    )
    return _save_model(graph, path)


def _build_two_inputs(path: Path) -> Path:
    """a["n", 2] + b["n", 2] -> sum["n", 2]."""
    graph = helper.make_graph(
        [helper.make_node("Add", ["a", "b"], ["sum"])],
        "two_inputs",
        [
            helper.make_tensor_value_info("a", TensorProto.FLOAT, ["n", 2]),
            helper.make_tensor_value_info("b", TensorProto.FLOAT, ["n", 2]),
        ],
        [helper.make_tensor_value_info("sum", TensorProto.FLOAT, ["n", 2])],
    )
    return _save_model(graph, path)


def _build_reshape(path: Path) -> Path:
    """x[?] reshaped to [2, 2]; fails at run time unless x has 4 elements."""
    graph = helper.make_graph(
        [helper.make_node("Reshape", ["x", "target"], ["y"])],
        "reshape",
        [helper.make_tensor_value_info("x", TensorProto.FLOAT, [None])],
        [helper.make_tensor_value_info("y", TensorProto.FLOAT, [2, 2])],
        initializer=[numpy_helper.from_array(np.array([2, 2], dtype=np.int64), "target")],
    )
    return _save_model(graph, path)


# ---------------------------------------------------------------------------
# Fixtures: model files
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def models_dir(tmp_path_factory) -> Path:
    return tmp_path_factory.mktemp("models")


@pytest.fixture(scope="session")
def classifier_model(models_dir: Path) -> Path:
    return _build_classifier(models_dir / "classifier.onnx")


@pytest.fixture(scope="session")
def dense_model(models_dir: Path) -> Path:
    return _build_dense(models_dir / "dense.onnx")


@pytest.fixture(scope="session")
def nonzero_model(models_dir: Path) -> Path:
    return _build_nonzero(models_dir / "nonzero.onnx")


@pytest.fixture(scope="session")
def two_input_model(models_dir: Path) -> Path:
    return _build_two_inputs(models_dir / "two_inputs.onnx")


@pytest.fixture(scope="session")
def reshape_model(models_dir: Path) -> Path:
    return _build_reshape(models_dir / "reshape.onnx")


# ---------------------------------------------------------------------------
# Fixtures: runtime objects
# ---------------------------------------------------------------------------


@pytest.fixture
def environment() -> Iterator[Environment]:
    """Fresh environment per test, closed afterwards."""
    env = Environment("test", "warning")
    yield env
    env.close()


@pytest.fixture
def classifier_session(environment, classifier_model):
    session = (
        environment.new_session_builder()
        .with_optimization_level("basic")
        .with_number_threads(1)
        .with_model_from_file(classifier_model)
    )
    yield session
    session.close()


@pytest.fixture
def dense_session(environment, dense_model):
    session = environment.new_session_builder().with_model_from_file(dense_model)
    yield session
    session.close()


@pytest.fixture
def linspace_input() -> np.ndarray:
    n = 1 * 3 * 224 * 224
    return np.linspace(0.0, 1.0, n, dtype=np.float32).reshape(1, 3, 224, 224)
