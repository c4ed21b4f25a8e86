# ortrunner/session.py

"""
Loading ONNX models into ONNX Runtime sessions.

A ``Session`` wraps ``onnxruntime.InferenceSession`` and exposes the model's
declared inputs and outputs as ``TensorInfo`` lists. Sessions are built
through a ``SessionBuilder`` obtained from an ``Environment``.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import onnxruntime as ort

from .errors import ExecutionError, ModelLoadError, ShapeMismatchError
from .tensor import (
    TensorInfo,
    TensorLike,
    check_element_type,
    resolve_input_shape,
    to_numpy,
)
from .utils import get_logger

logger = get_logger(__name__)


class GraphOptimizationLevel(Enum):
    DISABLE_ALL = "none"
    BASIC = "basic"
    EXTENDED = "extended"
    ALL = "all"

    @classmethod
    def parse(cls, value: Union[str, "GraphOptimizationLevel"]) -> "GraphOptimizationLevel":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(
            f"Unsupported optimization level: {value!r}. "
            f"Supported: {[m.value for m in cls]}"
        )

    def to_ort(self) -> ort.GraphOptimizationLevel:
        return {
            GraphOptimizationLevel.DISABLE_ALL: ort.GraphOptimizationLevel.ORT_DISABLE_ALL,
            GraphOptimizationLevel.BASIC: ort.GraphOptimizationLevel.ORT_ENABLE_BASIC,
            GraphOptimizationLevel.EXTENDED: ort.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
            GraphOptimizationLevel.ALL: ort.GraphOptimizationLevel.ORT_ENABLE_ALL,
        }[self]


class SessionBuilder:
    """
    Collects session options, then loads the model.

    Every ``with_*`` option returns the builder; ``with_model_from_*`` ends
    the chain and returns a ``Session``.
    """

    def __init__(self, environment):
        self.environment = environment
        self.optimization_level = GraphOptimizationLevel.ALL
        self.num_threads: Optional[int] = None
        self.providers: List[str] = ["CPUExecutionProvider"]

    def with_optimization_level(
        self, level: Union[str, GraphOptimizationLevel]
    ) -> "SessionBuilder":
        self.optimization_level = GraphOptimizationLevel.parse(level)
        return self

    def with_number_threads(self, num_threads: int) -> "SessionBuilder":
        if int(num_threads) < 1:
            raise ValueError(f"num_threads must be >= 1, got {num_threads}")
        self.num_threads = int(num_threads)
        return self

    def with_providers(self, providers: Sequence[str]) -> "SessionBuilder":
        if not providers:
            raise ValueError("At least one execution provider is required")
        self.providers = list(providers)
        return self

    def _session_options(self) -> ort.SessionOptions:
        sess_options = ort.SessionOptions()
        sess_options.graph_optimization_level = self.optimization_level.to_ort()
        sess_options.log_severity_level = self.environment.log_level.value
        sess_options.logid = self.environment.name
        sess_options.enable_cpu_mem_arena = True
        if self.num_threads is not None:
            sess_options.intra_op_num_threads = self.num_threads
        return sess_options

    def with_model_from_file(self, model_path: Union[str, os.PathLike]) -> "Session":
        """Load an ONNX model from disk."""
        model_path = os.fspath(model_path)
        if not os.path.exists(model_path):
            logger.error("Model file not found: %s", model_path)
            raise FileNotFoundError(f"Model file not found: {model_path}")
        return self._load(model_path, source=model_path)

    def with_model_from_memory(self, model_bytes: bytes) -> "Session":
        """Load an ONNX model from its serialized bytes."""
        return self._load(bytes(model_bytes), source=f"<memory: {len(model_bytes)} bytes>")

    def _load(self, model, source: str) -> "Session":
        self.environment._ensure_open()
        logger.info(
            "Loading model %s (optimization=%s, threads=%s, providers=%s)",
            source,
            self.optimization_level.value,
            self.num_threads if self.num_threads is not None else "default",
            self.providers,
        )
        try:
            inference_session = ort.InferenceSession(
                model, sess_options=self._session_options(), providers=self.providers
            )
        except Exception as e:
            logger.error("ONNX Runtime failed to load %s: %s", source, e)
            raise ModelLoadError(f"Failed to load model {source}: {e}") from e

        session = Session(inference_session, self.environment, source)
        logger.info(
            "Model loaded: inputs=%s outputs=%s",
            [(i.name, list(i.dimensions)) for i in session.inputs],
            [(o.name, list(o.dimensions)) for o in session.outputs],
        )
        return session


class Session:
    """A loaded model, ready to describe its signature and run."""

    def __init__(self, inference_session: ort.InferenceSession, environment, source: str):
        self._session = inference_session
        self.environment = environment
        self.source = source
        self.inputs: List[TensorInfo] = [
            TensorInfo.from_node_arg(a) for a in inference_session.get_inputs()
        ]
        self.outputs: List[TensorInfo] = [
            TensorInfo.from_node_arg(a) for a in inference_session.get_outputs()
        ]

    @property
    def closed(self) -> bool:
        return self._session is None

    @property
    def input_names(self) -> List[str]:
        return [i.name for i in self.inputs]

    @property
    def output_names(self) -> List[str]:
        return [o.name for o in self.outputs]

    def get_providers(self) -> List[str]:
        return self._ensure_open().get_providers()

    def prepare_inputs(
        self, inputs: Sequence[TensorLike], copy: bool = False
    ) -> Tuple[List[np.ndarray], dict]:
        """
        Validate ``inputs`` against the declared signature.

        Returns C-contiguous numpy arrays (copies when ``copy`` is set) and
        the sizes bound to symbolic dimensions.
        """
        if not isinstance(inputs, (list, tuple)):
            inputs = [inputs]
        if len(inputs) != len(self.inputs):
            raise ShapeMismatchError(
                f"Model expects {len(self.inputs)} input(s) {self.input_names}, "
                f"got {len(inputs)}"
            )

        arrays: List[np.ndarray] = []
        bound: dict = {}
        for info, value in zip(self.inputs, inputs):
            arr = to_numpy(value)
            check_element_type(info, arr.dtype, "Input")
            resolve_input_shape(info, arr.shape, bound)
            if copy:
                arr = np.array(arr, order="C", copy=True)
            else:
                arr = np.ascontiguousarray(arr)
            arrays.append(arr)
        return arrays, bound

    def run(self, inputs: Sequence[TensorLike]) -> List[np.ndarray]:
        """Run once, letting ONNX Runtime allocate fresh outputs."""
        arrays, _ = self.prepare_inputs(inputs)
        session = self._ensure_open()
        feeds = dict(zip(self.input_names, arrays))
        try:
            return session.run(self.output_names, feeds)
        except Exception as e:
            logger.error("ONNX Runtime execution failed: %s", e)
            raise ExecutionError(str(e)) from e

    def make_runner(self, inputs: Sequence[TensorLike], output_type=np.float32):
        """Bind ``inputs`` and pre-allocated outputs into a reusable ``Runner``."""
        from .runner import Runner

        return Runner(self, inputs, output_type=output_type)

    def close(self) -> None:
        """Release the ONNX Runtime session."""
        if self._session is not None:
            logger.info("Closing session for %s", self.source)
        self._session = None

    def _ensure_open(self) -> ort.InferenceSession:
        if self._session is None:
            raise ExecutionError(f"Session for {self.source} is closed")
        return self._session

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Session(source={self.source!r}, inputs={self.input_names}, "
            f"outputs={self.output_names})"
        )
