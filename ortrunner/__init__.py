import logging

# Add NullHandler to prevent logs when used as library
logging.getLogger(__name__).addHandler(logging.NullHandler())

"""
Thin binding layer over ONNX Runtime: environments, sessions and runners
with pre-allocated outputs.
"""

from .environment import Environment, LoggingLevel
from .errors import (
    ElementTypeError,
    ExecutionError,
    ModelLoadError,
    OrtRunnerError,
    ShapeMismatchError,
)
from .runner import Runner
from .session import GraphOptimizationLevel, Session, SessionBuilder
from .tensor import TensorInfo
from .utils import get_logger  # Export for users
from .utils import setup_logging  # Export for users who want to enable logging
from .utils import disable_logging, enable_logging

__version__ = "0.1.0"
