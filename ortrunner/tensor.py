# ortrunner/tensor.py

"""
Tensor descriptors reported by a loaded session.

ONNX Runtime reports each dimension either as an int (known), a string
(symbolic, e.g. ``"batch_size"``) or ``None``. Here a dimension is either a
positive ``int`` or ``None`` (unknown); symbolic names are kept on the side
so that output shapes can be resolved from the bound inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import torch

from .errors import ElementTypeError, ShapeMismatchError

Dimension = Optional[int]
Shape = Tuple[Dimension, ...]
TensorLike = Union[np.ndarray, torch.Tensor, Sequence]

# ONNX Runtime type strings -> numpy dtypes
_ORT_TO_NUMPY = {
    "tensor(float)": np.float32,
    "tensor(float16)": np.float16,
    "tensor(double)": np.float64,
    "tensor(int8)": np.int8,
    "tensor(int16)": np.int16,
    "tensor(int32)": np.int32,
    "tensor(int64)": np.int64,
    "tensor(uint8)": np.uint8,
    "tensor(uint16)": np.uint16,
    "tensor(uint32)": np.uint32,
    "tensor(uint64)": np.uint64,
    "tensor(bool)": np.bool_,
}


def element_type_from_ort(type_str: str) -> Optional[np.dtype]:
    """Map an ONNX Runtime type string to a numpy dtype (None if unsupported)."""
    dtype = _ORT_TO_NUMPY.get(type_str)
    return np.dtype(dtype) if dtype is not None else None


@dataclass(frozen=True)
class TensorInfo:
    """Name, element type and dimensions of one declared input or output."""

    name: str
    element_type: Optional[np.dtype]
    dimensions: Shape
    symbols: Tuple[Optional[str], ...] = field(default=())

    @classmethod
    def from_node_arg(cls, node_arg) -> "TensorInfo":
        """Build from an ``onnxruntime.NodeArg``."""
        dims: List[Dimension] = []
        symbols: List[Optional[str]] = []
        for d in node_arg.shape or ():
            if isinstance(d, int) and d > 0:
                dims.append(d)
                symbols.append(None)
            else:
                dims.append(None)
                symbols.append(d if isinstance(d, str) and d else None)
        return cls(
            name=node_arg.name,
            element_type=element_type_from_ort(node_arg.type),
            dimensions=tuple(dims),
            symbols=tuple(symbols),
        )

    @property
    def rank(self) -> int:
        return len(self.dimensions)

    def is_concrete(self) -> bool:
        return all(d is not None for d in self.dimensions)

    def concrete_shape(self) -> Tuple[int, ...]:
        """Return the shape when every dimension is known."""
        if not self.is_concrete():
            raise ShapeMismatchError(
                f"Tensor '{self.name}' has unknown dimensions: {format_shape(self.dimensions)}"
            )
        return tuple(self.dimensions)

    def num_elements(self) -> Optional[int]:
        if not self.is_concrete():
            return None
        return int(np.prod(self.dimensions, dtype=np.int64))


def format_shape(shape: Sequence[Dimension]) -> str:
    return "[" + ", ".join("?" if d is None else str(d) for d in shape) + "]"


def resolve_input_shape(
    info: TensorInfo, actual: Tuple[int, ...], bound: Dict[str, int]
) -> Tuple[int, ...]:
    """
    Check ``actual`` against the declared input shape.

    Unknown dimensions take their size from ``actual``. Symbolic names are
    recorded in ``bound`` and must agree across inputs.
    """
    if len(actual) != info.rank:
        raise ShapeMismatchError(
            f"Input '{info.name}' expects rank {info.rank} "
            f"{format_shape(info.dimensions)}, got shape {list(actual)}"
        )

    symbols = info.symbols or (None,) * info.rank
    for axis, (declared, size, symbol) in enumerate(zip(info.dimensions, actual, symbols)):
        if declared is not None and declared != size:
            raise ShapeMismatchError(
                f"Input '{info.name}' expects {format_shape(info.dimensions)}, "
                f"got {list(actual)} (axis {axis})"
            )
        if symbol is not None:
            if bound.setdefault(symbol, size) != size:
                raise ShapeMismatchError(
                    f"Symbolic dimension '{symbol}' bound to {bound[symbol]}, "
                    f"but input '{info.name}' has {size} on axis {axis}"
                )
    return tuple(actual)


def resolve_output_shape(info: TensorInfo, bound: Dict[str, int]) -> Tuple[int, ...]:
    """Concrete output shape, filling unknown dims from input symbols."""
    symbols = info.symbols or (None,) * info.rank
    shape: List[int] = []
    for axis, (declared, symbol) in enumerate(zip(info.dimensions, symbols)):
        if declared is not None:
            shape.append(declared)
        elif symbol is not None and symbol in bound:
            shape.append(bound[symbol])
        else:
            raise ShapeMismatchError(
                f"Cannot pre-allocate output '{info.name}': axis {axis} of "
                f"{format_shape(info.dimensions)} is not determined by the inputs"
            )
    return tuple(shape)


def to_numpy(value: TensorLike) -> np.ndarray:
    """Convert a numpy array, torch tensor or nested sequence to numpy."""
    if isinstance(value, np.ndarray):
        return value
    if isinstance(value, torch.Tensor):
        return value.detach().cpu().numpy()
    return np.asarray(value)


def check_element_type(info: TensorInfo, dtype: np.dtype, role: str) -> None:
    if info.element_type is None:
        raise ElementTypeError(
            f"{role} '{info.name}' has an element type ortrunner cannot bind"
        )
    if np.dtype(dtype) != info.element_type:
        raise ElementTypeError(
            f"{role} '{info.name}' is {info.element_type}, got {np.dtype(dtype)}"
        )
