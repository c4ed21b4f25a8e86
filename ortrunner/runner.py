# ortrunner/runner.py

"""
Repeated execution with pre-allocated output buffers.

A ``Runner`` copies the caller's inputs into buffers it owns, allocates one
zero-filled numpy array per model output and binds all of them to the
session once through ONNX Runtime I/O binding. Each ``execute()`` then writes
results straight into those arrays, so nothing is reallocated between runs.

Example:
    >>> runner = session.make_runner([np.linspace(0, 1, n, dtype=np.float32).reshape(shape)])
    >>> runner.execute()
    >>> runner.inputs()[0] *= 2.0
    >>> runner.execute()
    >>> scores = runner.outputs()[0]
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np
import onnxruntime as ort

from .errors import ExecutionError, ShapeMismatchError
from .session import Session
from .tensor import (
    TensorLike,
    check_element_type,
    format_shape,
    resolve_output_shape,
    to_numpy,
)
from .utils import get_logger

logger = get_logger(__name__)


class Runner:
    """Binds one session to a fixed set of input and output buffers."""

    def __init__(self, session: Session, inputs: Sequence[TensorLike], output_type=np.float32):
        self.session = session
        self.output_type = np.dtype(output_type)

        # Validation happens before anything is handed to ONNX Runtime
        bound_inputs, symbols = session.prepare_inputs(inputs, copy=True)

        output_shapes = []
        for info in session.outputs:
            check_element_type(info, self.output_type, "Output")
            output_shapes.append(resolve_output_shape(info, symbols))

        self._bound_inputs: List[np.ndarray] = bound_inputs
        self._inputs: List[np.ndarray] = list(bound_inputs)
        self._outputs: List[np.ndarray] = [
            np.zeros(shape, dtype=self.output_type) for shape in output_shapes
        ]
        self.execution_count = 0

        self._binding = session._ensure_open().io_binding()
        # OrtValues created from CPU numpy arrays share their memory
        self._ort_inputs = [ort.OrtValue.ortvalue_from_numpy(a) for a in self._bound_inputs]
        self._ort_outputs = [ort.OrtValue.ortvalue_from_numpy(a) for a in self._outputs]
        for name, value in zip(session.input_names, self._ort_inputs):
            self._binding.bind_ortvalue_input(name, value)
        for name, value in zip(session.output_names, self._ort_outputs):
            self._binding.bind_ortvalue_output(name, value)

        logger.debug(
            "Runner bound inputs %s and outputs %s",
            [(n, list(a.shape)) for n, a in zip(session.input_names, self._bound_inputs)],
            [(n, list(a.shape)) for n, a in zip(session.output_names, self._outputs)],
        )

    @property
    def input_names(self) -> List[str]:
        return self.session.input_names

    @property
    def output_names(self) -> List[str]:
        return self.session.output_names

    def inputs(self) -> List[np.ndarray]:
        """
        Mutable access to the bound input buffers.

        Modify them in place (``runner.inputs()[0] *= 2``). Replacing a list
        entry is also accepted; the new values are copied into the bound
        buffer on the next ``execute()``.
        """
        return self._inputs

    def outputs(self) -> List[np.ndarray]:
        """Read-only views of the outputs of the last ``execute()`` (zeros before)."""
        views = []
        for arr in self._outputs:
            view = arr.view()
            view.flags.writeable = False
            views.append(view)
        return views

    def execute(self) -> None:
        """Run the session once, overwriting the output buffers."""
        self._sync_inputs()
        session = self.session._ensure_open()
        try:
            session.run_with_iobinding(self._binding)
        except Exception as e:
            logger.error("ONNX Runtime execution failed: %s", e)
            raise ExecutionError(str(e)) from e
        self.execution_count += 1
        logger.debug("Runner execution #%d done", self.execution_count)

    def _sync_inputs(self) -> None:
        # check every replaced entry before touching any bound buffer
        pending = []
        for i, (info, buffer) in enumerate(zip(self.session.inputs, self._bound_inputs)):
            current = self._inputs[i]
            if current is buffer:
                continue
            arr = to_numpy(current)
            check_element_type(info, arr.dtype, "Input")
            if arr.shape != buffer.shape:
                raise ShapeMismatchError(
                    f"Input '{info.name}' is bound with shape {format_shape(buffer.shape)}, "
                    f"got {format_shape(arr.shape)}"
                )
            pending.append((i, arr))

        for i, arr in pending:
            np.copyto(self._bound_inputs[i], arr)
            self._inputs[i] = self._bound_inputs[i]

    def __repr__(self) -> str:
        return (
            f"Runner(inputs={[list(a.shape) for a in self._bound_inputs]}, "
            f"outputs={[list(a.shape) for a in self._outputs]}, "
            f"executions={self.execution_count})"
        )
