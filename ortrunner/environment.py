# ortrunner/environment.py

"""
Process-wide ONNX Runtime state.

ONNX Runtime keeps a single default logger per process, so only one
``Environment`` is alive at a time. Asking for another while one is open
returns the existing instance.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Optional, Union

import onnxruntime as ort

from .utils import get_logger

logger = get_logger(__name__)


class LoggingLevel(Enum):
    """ONNX Runtime log severities (independent of the Python ``logging`` level)."""

    VERBOSE = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4

    @classmethod
    def parse(cls, value: Union[str, int, "LoggingLevel"]) -> "LoggingLevel":
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(
                f"Unknown ONNX Runtime log level: {value!r}. "
                f"Supported: {[m.name.lower() for m in cls]}"
            ) from None


class Environment:
    """
    Owner of ONNX Runtime's process-wide logging state.

    Create it once at startup, then build sessions from it:

    Example:
        >>> env = Environment("sample", LoggingLevel.INFO)
        >>> session = (
        ...     env.new_session_builder()
        ...     .with_optimization_level("basic")
        ...     .with_number_threads(1)
        ...     .with_model_from_file("squeezenet1.0-8.onnx")
        ... )
    """

    _lock = threading.Lock()
    _active: Optional["Environment"] = None

    def __new__(
        cls,
        name: str = "default",
        log_level: Union[str, int, LoggingLevel] = LoggingLevel.WARNING,
    ):
        with cls._lock:
            current = cls._active
            if current is not None and not current.closed:
                level = LoggingLevel.parse(log_level)
                if current.name != name or current.log_level != level:
                    logger.warning(
                        "Environment '%s' (%s) already active; ignoring request for '%s' (%s)",
                        current.name,
                        current.log_level.name,
                        name,
                        level.name,
                    )
                return current

            instance = super().__new__(cls)
            instance._initialized = False
            cls._active = instance
            return instance

    def __init__(
        self,
        name: str = "default",
        log_level: Union[str, int, LoggingLevel] = LoggingLevel.WARNING,
    ):
        if self._initialized:
            return

        self.name = name
        self.log_level = LoggingLevel.parse(log_level)
        self.closed = False
        self._initialized = True

        ort.set_default_logger_severity(self.log_level.value)
        logger.info(
            "Created ONNX Runtime environment '%s' (onnxruntime %s, log level %s)",
            self.name,
            ort.__version__,
            self.log_level.name,
        )
        logger.debug("Available execution providers: %s", ort.get_available_providers())

    @classmethod
    def active(cls) -> Optional["Environment"]:
        """Return the open environment, if any."""
        current = cls._active
        if current is None or current.closed:
            return None
        return current

    def new_session_builder(self):
        """Start configuring a session owned by this environment."""
        from .session import SessionBuilder

        self._ensure_open()
        return SessionBuilder(self)

    def close(self) -> None:
        """Release the environment so that a new one can be created."""
        with Environment._lock:
            if self.closed:
                return
            self.closed = True
            if Environment._active is self:
                Environment._active = None
        logger.info("Closed ONNX Runtime environment '%s'", self.name)

    def _ensure_open(self) -> None:
        if self.closed:
            raise RuntimeError(f"Environment '{self.name}' is closed")

    def __enter__(self) -> "Environment":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"Environment(name={self.name!r}, log_level={self.log_level.name}, {state})"
