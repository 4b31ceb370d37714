"""
Kernel dispatch and result read-back.

A launch enqueues the kernel over an NDRange and blocks until the whole queue
has drained, so its timing covers device execution and nothing else. Result
sync copies the double and float arrays of a bound-argument table back into
their host arrays; boolean arrays are left for an explicit copy_from_device.
"""

import logging
import numbers
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import pyopencl as cl

from .errors import DispatchError, TransferError
from .kernel_args import BoundArguments
from .timing import KernelTimer
from .transfer import copy_from_device

logger = logging.getLogger(__name__)

MAX_WORK_DIMS = 3


@dataclass(frozen=True)
class LaunchResult:
    """Outcome of a launch or run.

    Attributes:
        elapsed_ms: Time from enqueue to queue drain
        synced: Argument indices copied back to the host, in bind order
    """
    elapsed_ms: float
    synced: Tuple[int, ...] = ()


def _as_extents(extents: Sequence[int], label: str) -> Tuple[int, ...]:
    if isinstance(extents, numbers.Integral):
        extents = (extents,)
    extents = tuple(int(e) for e in extents)
    if not 1 <= len(extents) <= MAX_WORK_DIMS:
        raise ValueError(
            f"{label} size must have 1 to {MAX_WORK_DIMS} dimensions, got {len(extents)}"
        )
    if any(e <= 0 for e in extents):
        raise ValueError(f"{label} size entries must be positive, got {extents}")
    return extents


def launch_kernel(
    queue: cl.CommandQueue,
    kernel: cl.Kernel,
    global_size: Sequence[int],
    local_size: Optional[Sequence[int]],
    timer: KernelTimer,
) -> LaunchResult:
    """
    Run a kernel over an index space and wait for the queue to drain.

    Args:
        queue: In-order command queue
        kernel: Kernel with all arguments bound
        global_size: Global extent per axis (1 to 3 axes)
        local_size: Work-group extent per axis, same rank as global_size;
                    None lets the runtime choose
        timer: Accumulator charged with the elapsed time

    Returns:
        LaunchResult with the elapsed time

    Raises:
        ValueError: If the extents are malformed
        DispatchError: If enqueue or the queue drain fails
    """
    global_size = _as_extents(global_size, "Global")
    if local_size is not None:
        local_size = _as_extents(local_size, "Local")
        if len(local_size) != len(global_size):
            raise ValueError(
                f"Local size {local_size} must have the same rank as global size {global_size}"
            )

    logger.debug(f"Launching kernel: global={global_size} local={local_size}")
    try:
        with timer.measure():
            cl.enqueue_nd_range_kernel(queue, kernel, global_size, local_size)
            queue.finish()
    except cl.Error as e:
        logger.error(f"Error: Failed to execute kernel! {e}")
        raise DispatchError(f"Failed to execute kernel: {e}") from e

    return LaunchResult(elapsed_ms=timer.last_ms)


def sync_results(queue: cl.CommandQueue, table: BoundArguments) -> Tuple[int, ...]:
    """
    Copy every double and float array of a table back to its host array.

    Each array is read exactly once, in bind order.

    Returns:
        Indices of the arguments that were read back

    Raises:
        TransferError: If an entry's buffer was already released or a copy fails
    """
    synced = []
    for index, entry in table.synced_arrays():
        if entry.buffer is None:
            logger.error(f"Error: kernel arg {index} has no device buffer to read back!")
            raise TransferError(f"Argument {index} has been released; cannot read it back")
        copy_from_device(queue, entry.buffer, entry.arg.data, entry.arg.count)
        synced.append(index)
    return tuple(synced)
