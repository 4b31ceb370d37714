"""
Typed kernel argument descriptors.

The binder accepts an ordered list drawn from this closed set:

- DoubleArray / FloatArray / BooleanArray: host arrays that are copied into a
  fresh device buffer at bind time. Double and float arrays are copied back by
  run(); boolean arrays are not and must be fetched explicitly.
- IntConstant / DoubleConstant: scalars passed by value.

Array descriptors hold the caller's numpy array itself, because read-back
writes into it in place. The dtype therefore has to match exactly; nothing is
converted behind the caller's back.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, List, Optional, Tuple

import numpy as np

UINT32_MAX = 2**32 - 1


class KernelArg:
    """Common base of all descriptors."""

    is_array: ClassVar[bool] = False
    # Type names the runtime may report for the matching kernel parameter
    # (pointee type for arrays).
    cl_type_names: ClassVar[Tuple[str, ...]] = ()

    def validate(self) -> None:
        raise NotImplementedError


@dataclass
class ArrayArg(KernelArg):
    data: np.ndarray
    count: Optional[int] = None

    is_array: ClassVar[bool] = True
    dtype: ClassVar[np.dtype] = np.dtype(np.float64)
    auto_sync: ClassVar[bool] = True

    def __post_init__(self):
        self.validate()
        if self.count is None:
            self.count = int(self.data.size)

    def validate(self) -> None:
        if not isinstance(self.data, np.ndarray):
            raise TypeError(
                f"{type(self).__name__} expects a numpy array, got {type(self.data).__name__}"
            )
        if self.data.dtype != self.dtype:
            raise TypeError(
                f"{type(self).__name__} expects dtype {self.dtype}, got {self.data.dtype}"
            )
        if not self.data.flags.c_contiguous:
            raise ValueError(f"{type(self).__name__} requires a C-contiguous array")
        if self.count is not None:
            if self.count < 0 or self.count > self.data.size:
                raise ValueError(
                    f"{type(self).__name__} count {self.count} outside [0, {self.data.size}]"
                )

    @property
    def nbytes(self) -> int:
        return int(self.count) * self.dtype.itemsize


@dataclass
class DoubleArray(ArrayArg):
    dtype: ClassVar[np.dtype] = np.dtype(np.float64)
    cl_type_names: ClassVar[Tuple[str, ...]] = ("double",)


@dataclass
class FloatArray(ArrayArg):
    dtype: ClassVar[np.dtype] = np.dtype(np.float32)
    cl_type_names: ClassVar[Tuple[str, ...]] = ("float",)


@dataclass
class BooleanArray(ArrayArg):
    """One byte per element; declare the parameter as __global uchar*."""

    dtype: ClassVar[np.dtype] = np.dtype(np.bool_)
    auto_sync: ClassVar[bool] = False
    cl_type_names: ClassVar[Tuple[str, ...]] = ("uchar", "char", "bool")


@dataclass
class IntConstant(KernelArg):
    value: int

    cl_type_names: ClassVar[Tuple[str, ...]] = ("uint", "int")

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if isinstance(self.value, (bool, np.bool_)) or not isinstance(self.value, (int, np.integer)):
            raise TypeError(f"IntConstant expects an integer, got {type(self.value).__name__}")
        if self.value < 0 or self.value > UINT32_MAX:
            raise ValueError(f"IntConstant value {self.value} does not fit in 32 unsigned bits")

    def to_cl(self) -> np.uint32:
        return np.uint32(self.value)


@dataclass
class DoubleConstant(KernelArg):
    value: float

    cl_type_names: ClassVar[Tuple[str, ...]] = ("double",)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if isinstance(self.value, (bool, np.bool_)) or not isinstance(
            self.value, (int, float, np.integer, np.floating)
        ):
            raise TypeError(f"DoubleConstant expects a number, got {type(self.value).__name__}")

    def to_cl(self) -> np.float64:
        return np.float64(self.value)


ARG_TYPES = (DoubleArray, FloatArray, BooleanArray, IntConstant, DoubleConstant)

_ARRAY_TYPES_BY_DTYPE = {
    np.dtype(np.float64): DoubleArray,
    np.dtype(np.float32): FloatArray,
    np.dtype(np.bool_): BooleanArray,
}


def infer_kernel_arg(value: Any) -> KernelArg:
    """
    Build a descriptor from a plain value.

    float64/float32/bool arrays map to the array descriptors, integers to
    IntConstant and floats to DoubleConstant. Existing descriptors pass
    through unchanged.

    Raises:
        TypeError: If the value has no descriptor
    """
    if isinstance(value, KernelArg):
        return value
    if isinstance(value, np.ndarray):
        arg_cls = _ARRAY_TYPES_BY_DTYPE.get(value.dtype)
        if arg_cls is None:
            raise TypeError(f"No kernel argument type for array dtype {value.dtype}")
        return arg_cls(value)
    if isinstance(value, (bool, np.bool_)):
        raise TypeError("Boolean scalars cannot be passed as kernel arguments")
    if isinstance(value, (int, np.integer)):
        return IntConstant(int(value))
    if isinstance(value, (float, np.floating)):
        return DoubleConstant(float(value))
    raise TypeError(f"No kernel argument type for {type(value).__name__}")


@dataclass
class BoundArgument:
    """A descriptor after binding; array entries carry their device buffer."""

    arg: KernelArg
    buffer: Any = None

    @property
    def is_array(self) -> bool:
        return self.arg.is_array

    @property
    def released(self) -> bool:
        return self.is_array and self.buffer is None


@dataclass
class BoundArguments:
    """Bound-argument table of one kernel, in parameter order."""

    kernel: Any
    entries: List[BoundArgument] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> BoundArgument:
        return self.entries[index]

    def __iter__(self):
        return iter(self.entries)

    def arrays(self) -> List[Tuple[int, BoundArgument]]:
        return [(i, e) for i, e in enumerate(self.entries) if e.is_array]

    def synced_arrays(self) -> List[Tuple[int, BoundArgument]]:
        """Array entries that run() copies back, in bind order."""
        return [(i, e) for i, e in self.arrays() if e.arg.auto_sync]
