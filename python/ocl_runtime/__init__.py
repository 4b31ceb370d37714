"""
ocl_runtime - host-side harness for running OpenCL kernels from numpy arrays.

Main entry points:
- DeviceSession: device selection, buffers, build/bind/launch/run, timing
- DoubleArray, FloatArray, BooleanArray, IntConstant, DoubleConstant:
  typed kernel argument descriptors
- CodeRunner: run an example kernel and compare it with a numpy golden
"""

from .code_runner import CodeRunner
from .device_session import DeviceSession
from .dispatcher import LaunchResult
from .errors import (
    ArgumentBindError,
    ArgumentCapacityError,
    BufferAllocationError,
    BuildError,
    ContextError,
    DeviceNotFoundError,
    DeviceQueryError,
    DispatchError,
    HarnessError,
    KernelNotFoundError,
    KernelSignatureError,
    SessionClosedError,
    TransferError,
)
from .kernel_args import (
    BooleanArray,
    BoundArgument,
    BoundArguments,
    DoubleArray,
    DoubleConstant,
    FloatArray,
    IntConstant,
    infer_kernel_arg,
)
from .timing import KernelTimer, format_kernel_time

__version__ = "0.1.0"

__all__ = [
    "ArgumentBindError",
    "ArgumentCapacityError",
    "BooleanArray",
    "BoundArgument",
    "BoundArguments",
    "BufferAllocationError",
    "BuildError",
    "CodeRunner",
    "ContextError",
    "DeviceNotFoundError",
    "DeviceQueryError",
    "DeviceSession",
    "DispatchError",
    "DoubleArray",
    "DoubleConstant",
    "FloatArray",
    "HarnessError",
    "IntConstant",
    "KernelNotFoundError",
    "KernelSignatureError",
    "KernelTimer",
    "LaunchResult",
    "SessionClosedError",
    "TransferError",
    "format_kernel_time",
    "infer_kernel_arg",
]
