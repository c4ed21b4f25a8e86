# ortrunner/errors.py

"""
Exceptions raised by the ONNX Runtime binding layer.

Engine failures are not classified beyond where they happen: loading,
binding (shape / element type) or execution. The original engine exception
is always chained as ``__cause__``.
"""


class OrtRunnerError(Exception):
    """Base class for all ortrunner errors."""


class ModelLoadError(OrtRunnerError):
    """ONNX Runtime could not parse or load the model."""


class ShapeMismatchError(OrtRunnerError, ValueError):
    """Input buffers do not match the session's declared signature."""


class ElementTypeError(OrtRunnerError, TypeError):
    """Buffer element type differs from what the model declares."""


class ExecutionError(OrtRunnerError, RuntimeError):
    """ONNX Runtime reported an error while running the graph."""
