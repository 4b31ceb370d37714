"""
Exception hierarchy for the OpenCL harness.

Every failure the harness detects is logged and then raised as one of these.
Caller misuse (bad shapes, dtypes or counts) raises ValueError / TypeError
instead.
"""

from typing import Optional


class HarnessError(RuntimeError):
    """Base class for all harness failures."""


class SessionClosedError(HarnessError):
    """Operation attempted on a session that is not open."""


class DeviceNotFoundError(HarnessError):
    """No platform offers a device of the requested class."""


class ContextError(HarnessError):
    """Context or command queue creation failed."""


class DeviceQueryError(HarnessError):
    """A device info query failed."""


class BufferAllocationError(HarnessError):
    """Device buffer allocation failed."""


class TransferError(HarnessError):
    """A host/device copy failed."""


class BuildError(HarnessError):
    """Kernel source failed to compile.

    Attributes:
        build_log: Compiler diagnostics, truncated to the harness log limit
    """

    def __init__(self, message: str, build_log: str = ""):
        super().__init__(message)
        self.build_log = build_log

    def __str__(self):
        base = super().__str__()
        if self.build_log:
            return f"{base}\n{self.build_log}"
        return base


class KernelNotFoundError(HarnessError):
    """Entry point could not be resolved in a built program."""


class ArgumentBindError(HarnessError):
    """Binding a kernel argument failed.

    Attributes:
        index: Position of the failing argument, or None when the whole
               argument list was rejected
    """

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index


class ArgumentCapacityError(ArgumentBindError):
    """Argument list is longer than the binder accepts."""


class KernelSignatureError(ArgumentBindError):
    """Argument list does not match the kernel's declared parameters."""


class DispatchError(HarnessError):
    """Kernel enqueue or queue drain failed."""
