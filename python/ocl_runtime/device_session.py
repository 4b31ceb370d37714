"""
DeviceSession - one OpenCL device with its context, queue and kernel state.

A session owns everything created for its device: built programs, the
bound-argument table of every kernel it has bound, and the kernel timer.
Sessions are independent objects; several may be open at once.

Usage:
    with DeviceSession.open("gpu") as session:
        kernel = session.setup_kernel(source, "relax", [
            DoubleArray(a), DoubleArray(b), BooleanArray(stable),
            DoubleConstant(0.1), IntConstant(len(a)),
        ])
        session.run(kernel, (len(a),), (32,))
        session.report_timing()
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import pyopencl as cl

from . import env_manager
from .binder import bind_arguments, release_table, swap_entries
from .dispatcher import LaunchResult, launch_kernel, sync_results
from .errors import ContextError, DeviceNotFoundError, DeviceQueryError, SessionClosedError
from .kernel_args import BoundArguments, KernelArg
from .kernel_builder import build_program, extract_kernel
from .timing import KernelTimer
from .transfer import allocate_buffer, copy_from_device, copy_to_device

logger = logging.getLogger(__name__)

DEVICE_CLASSES = {
    "gpu": cl.device_type.GPU,
    "cpu": cl.device_type.CPU,
    "accelerator": cl.device_type.ACCELERATOR,
    "all": cl.device_type.ALL,
}


class DeviceSession:
    """
    OpenCL device, context and in-order command queue.

    Prefer the open() / accelerator() / host_device() constructors, which pick
    the device. Every operation other than teardown() raises
    SessionClosedError once the session has been torn down.

    Args:
        platform: Platform the device belongs to
        device: Selected device
        context: Context over the device
        queue: In-order command queue on the context
        device_class: Class the device was selected by
        max_kernel_args: Binder capacity; OCL_MAX_KERNEL_ARGS by default
        clock: Clock for the kernel timer; time.perf_counter by default
    """

    def __init__(
        self,
        platform: cl.Platform,
        device: cl.Device,
        context: cl.Context,
        queue: cl.CommandQueue,
        device_class: str = "all",
        max_kernel_args: Optional[int] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.platform = platform
        self.device = device
        self.device_class = device_class
        self._context = context
        self._queue = queue
        self.max_kernel_args = (
            max_kernel_args if max_kernel_args is not None else env_manager.get_max_kernel_args()
        )
        self.timer = KernelTimer(clock=clock)
        self._programs: List[cl.Program] = []
        self._tables: Dict[int, BoundArguments] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def open(cls, device_class: Optional[str] = None, **kwargs) -> "DeviceSession":
        """
        Select the first device of a class and create its context and queue.

        Platforms are tried in enumeration order; the first one that offers a
        device of the class wins.

        Args:
            device_class: "gpu", "cpu", "accelerator" or "all";
                          OCL_DEVICE_TYPE by default
            **kwargs: Passed to the constructor

        Raises:
            ValueError: If device_class is unknown
            DeviceNotFoundError: If no platform or matching device exists
            ContextError: If context or queue creation fails
        """
        if device_class is None:
            device_class = env_manager.get_device_type()
        device_class = device_class.lower()
        if device_class not in DEVICE_CLASSES:
            raise ValueError(
                f"Unknown device class: {device_class}. Supported: {', '.join(DEVICE_CLASSES)}"
            )

        try:
            platforms = cl.get_platforms()
        except cl.Error as e:
            logger.error(f"Error: Failed to find a platform! {e}")
            raise DeviceNotFoundError(f"Failed to find an OpenCL platform: {e}") from e
        if not platforms:
            logger.error("Error: Failed to find a platform!")
            raise DeviceNotFoundError("Failed to find an OpenCL platform")

        platform, device = None, None
        for candidate in platforms:
            try:
                devices = candidate.get_devices(device_type=DEVICE_CLASSES[device_class])
            except cl.Error as e:
                logger.debug(f"Platform '{candidate.name}' has no {device_class} device: {e}")
                continue
            if devices:
                platform, device = candidate, devices[0]
                break
        if device is None:
            logger.error(f"Error: Failed to create a device group ({device_class})!")
            raise DeviceNotFoundError(f"No OpenCL platform offers a {device_class} device")

        try:
            context = cl.Context([device])
        except cl.Error as e:
            logger.error(f"Error: Failed to create a compute context! {e}")
            raise ContextError(f"Failed to create a compute context: {e}") from e
        try:
            queue = cl.CommandQueue(context, device)
        except cl.Error as e:
            logger.error(f"Error: Failed to create a command queue! {e}")
            raise ContextError(f"Failed to create a command queue: {e}") from e

        logger.info(
            f"Using device '{device.name.strip()}' on platform '{platform.name.strip()}'"
        )
        return cls(platform, device, context, queue, device_class=device_class, **kwargs)

    @classmethod
    def accelerator(cls, **kwargs) -> "DeviceSession":
        """Open the first GPU."""
        return cls.open("gpu", **kwargs)

    @classmethod
    def host_device(cls, **kwargs) -> "DeviceSession":
        """Open the host CPU as an OpenCL device. Not every implementation offers one."""
        return cls.open("cpu", **kwargs)

    @property
    def is_open(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> cl.Context:
        self._require_open()
        return self._context

    @property
    def queue(self) -> cl.CommandQueue:
        self._require_open()
        return self._queue

    def _require_open(self) -> None:
        if self._context is None:
            raise SessionClosedError("Device session has been torn down")

    def teardown(self) -> None:
        """
        Release every bound buffer, program, the queue and the context.

        Calling it again is a no-op.
        """
        if self._context is None:
            return
        self.release_buffers()
        self._programs.clear()
        self._queue.finish()
        self._queue = None
        self._context = None
        logger.info("Device session released")

    def __enter__(self) -> "DeviceSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    # ------------------------------------------------------------------
    # Device queries
    # ------------------------------------------------------------------

    def max_work_items(self, dim: int) -> int:
        """
        Maximum work-item extent of the device along one axis.

        Returns 0 (and logs an error) for a dimension outside {0, 1, 2}.

        Raises:
            DeviceQueryError: If the runtime query fails
        """
        self._require_open()
        if dim not in (0, 1, 2):
            logger.error(f"Error: max_work_items called with illegal dimension {dim}!")
            return 0
        try:
            sizes = self.device.max_work_item_sizes
        except cl.Error as e:
            logger.error(f"Error: Failed to get device info on work item sizes! {e}")
            raise DeviceQueryError(f"Failed to query work item sizes: {e}") from e
        return int(sizes[dim]) if dim < len(sizes) else 0

    def describe_device(self) -> str:
        """Device name, max work-group size and max work-item sizes per axis."""
        self._require_open()
        sizes = [int(s) for s in self.device.max_work_item_sizes]
        return "\n".join([
            f"DEVICE_NAME:               {self.device.name.strip()}",
            f"DEVICE_MAX_WORK_GROUP_SIZE: {self.device.max_work_group_size}",
            f"DEVICE_MAX_WORK_ITEM_SIZES: {' / '.join(str(s) for s in sizes)}",
        ])

    def print_device_info(self) -> None:
        print(f"\n{self.describe_device()}\n")

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------

    def allocate_buffer(self, nbytes: int) -> cl.Buffer:
        return allocate_buffer(self.context, nbytes)

    def copy_to_device(self, host: np.ndarray, buf: cl.Buffer, count: Optional[int] = None) -> None:
        copy_to_device(self.queue, host, buf, count)

    def copy_from_device(self, buf: cl.Buffer, host: np.ndarray, count: Optional[int] = None) -> None:
        copy_from_device(self.queue, buf, host, count)

    # ------------------------------------------------------------------
    # Programs and kernels
    # ------------------------------------------------------------------

    def build(self, source: str, options: Optional[Sequence[str]] = None) -> cl.Program:
        """Compile source for this session's device. See kernel_builder.build_program."""
        program = build_program(self.context, self.device, source, options)
        self._programs.append(program)
        return program

    def extract_kernel(self, program: cl.Program, name: str) -> cl.Kernel:
        """Resolve an entry point. Call repeatedly for several independent kernels."""
        self._require_open()
        return extract_kernel(program, name)

    def bind(self, kernel: cl.Kernel, args: Sequence[KernelArg]) -> BoundArguments:
        """
        Bind arguments to a kernel, replacing any table it already had.

        The previous table's buffers are released before the new ones are
        allocated. See binder.bind_arguments for the checks performed.
        """
        self._require_open()
        release_table(self._tables.pop(id(kernel), None))
        table = bind_arguments(self._context, self._queue, kernel, args, self.max_kernel_args)
        self._tables[id(kernel)] = table
        return table

    def setup_kernel(
        self,
        source: str,
        name: str,
        args: Sequence[KernelArg],
        options: Optional[Sequence[str]] = None,
    ) -> cl.Kernel:
        """Build, extract and bind in one step; returns the ready kernel."""
        program = self.build(source, options)
        kernel = self.extract_kernel(program, name)
        self.bind(kernel, args)
        return kernel

    def bound_arguments(self, kernel: cl.Kernel) -> BoundArguments:
        """
        Bound-argument table of a kernel.

        Raises:
            KeyError: If the kernel has not been bound in this session
        """
        self._require_open()
        try:
            return self._tables[id(kernel)]
        except KeyError:
            raise KeyError("Kernel has no bound arguments in this session")

    def swap_arguments(self, kernel: cl.Kernel, first: int, second: int) -> None:
        """Exchange two bound arguments of a kernel (double buffering)."""
        swap_entries(self.bound_arguments(kernel), first, second)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def launch(
        self,
        kernel: cl.Kernel,
        global_size: Sequence[int],
        local_size: Optional[Sequence[int]] = None,
    ) -> LaunchResult:
        """Execute a kernel and block until the queue drains; time is accumulated."""
        return launch_kernel(self.queue, kernel, global_size, local_size, self.timer)

    def sync(self, kernel: cl.Kernel) -> tuple:
        """Copy a kernel's double and float arrays back to the host."""
        return sync_results(self.queue, self.bound_arguments(kernel))

    def run(
        self,
        kernel: cl.Kernel,
        global_size: Sequence[int],
        local_size: Optional[Sequence[int]] = None,
    ) -> LaunchResult:
        """launch() followed by sync(). Boolean arrays are not read back."""
        table = self.bound_arguments(kernel)
        result = self.launch(kernel, global_size, local_size)
        synced = sync_results(self._queue, table)
        return LaunchResult(elapsed_ms=result.elapsed_ms, synced=synced)

    def release_buffers(self, kernel: Optional[cl.Kernel] = None) -> int:
        """
        Release device buffers of one kernel's table, or of all tables.

        Released tables are dropped from the session, so the kernel and its host
        arrays are no longer referenced and releasing twice is a no-op.

        Returns:
            Number of buffers released by this call
        """
        self._require_open()
        if kernel is not None:
            return release_table(self._tables.pop(id(kernel), None))
        released = sum(release_table(table) for table in self._tables.values())
        self._tables.clear()
        return released

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    @property
    def kernel_time_ms(self) -> float:
        return self.timer.total_ms

    def report_timing(self) -> None:
        """Print the accumulated kernel time to stdout."""
        print(self.timer.report())
