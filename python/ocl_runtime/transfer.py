"""
Device buffer allocation and blocking host/device copies.

Supported host element types are float64, float32 and bool (one byte per
element). Every copy blocks the calling thread until the queue has finished it.
"""

import logging
from typing import Optional

import numpy as np
import pyopencl as cl

from .errors import BufferAllocationError, TransferError

logger = logging.getLogger(__name__)

TRANSFER_DTYPES = (np.dtype(np.float64), np.dtype(np.float32), np.dtype(np.bool_))


def allocate_buffer(context: cl.Context, nbytes: int) -> cl.Buffer:
    """
    Allocate a read/write device buffer.

    OpenCL rejects zero-sized buffers, so a zero-byte request gets one byte.

    Args:
        context: Context that owns the buffer
        nbytes: Requested size in bytes

    Returns:
        The new buffer

    Raises:
        ValueError: If nbytes is negative
        BufferAllocationError: If the runtime refuses the allocation
    """
    if nbytes < 0:
        raise ValueError(f"Buffer size must be non-negative, got {nbytes}")
    try:
        buf = cl.Buffer(context, cl.mem_flags.READ_WRITE, size=max(int(nbytes), 1))
    except cl.Error as e:
        logger.error(f"Failed to allocate device memory ({nbytes} bytes): {e}")
        raise BufferAllocationError(
            f"Failed to allocate device memory ({nbytes} bytes): {e}"
        ) from e
    logger.debug(f"Allocated device buffer of {nbytes} bytes")
    return buf


def _checked_count(host: np.ndarray, buf: cl.Buffer, count: Optional[int]) -> int:
    if not isinstance(host, np.ndarray):
        raise TypeError(f"Host array must be a numpy array, got {type(host).__name__}")
    if host.dtype not in TRANSFER_DTYPES:
        raise TypeError(
            f"Unsupported host dtype {host.dtype}. Supported: "
            f"{', '.join(str(d) for d in TRANSFER_DTYPES)}"
        )
    if not host.flags.c_contiguous:
        raise ValueError("Host array must be C-contiguous")
    if count is None:
        count = int(host.size)
    if count < 0 or count > host.size:
        raise ValueError(f"Element count {count} outside [0, {host.size}]")
    nbytes = count * host.dtype.itemsize
    if nbytes > buf.size:
        raise ValueError(
            f"Transfer of {nbytes} bytes exceeds device buffer size {buf.size}"
        )
    return count


def copy_to_device(
    queue: cl.CommandQueue,
    host: np.ndarray,
    buf: cl.Buffer,
    count: Optional[int] = None,
) -> None:
    """
    Copy the first `count` elements of a host array into a device buffer.

    Args:
        queue: Command queue to submit on
        host: float64, float32 or bool array
        buf: Destination buffer
        count: Elements to copy, the whole array by default

    Raises:
        TransferError: If the runtime reports a failure
    """
    count = _checked_count(host, buf, count)
    if count == 0:
        return
    flat = host.reshape(-1)[:count]
    try:
        cl.enqueue_copy(queue, buf, flat, is_blocking=True)
    except cl.Error as e:
        logger.error(f"Failed to transfer from host to device: {e}")
        raise TransferError(f"Failed to transfer from host to device: {e}") from e


def copy_from_device(
    queue: cl.CommandQueue,
    buf: cl.Buffer,
    host: np.ndarray,
    count: Optional[int] = None,
) -> None:
    """
    Copy `count` elements from a device buffer into the start of a host array.

    Args:
        queue: Command queue to submit on
        buf: Source buffer
        host: float64, float32 or bool array, written in place
        count: Elements to copy, the whole array by default

    Raises:
        TransferError: If the runtime reports a failure
    """
    count = _checked_count(host, buf, count)
    if count == 0:
        return
    flat = host.reshape(-1)[:count]
    try:
        cl.enqueue_copy(queue, flat, buf, is_blocking=True)
    except cl.Error as e:
        logger.error(f"Failed to transfer from device to host: {e}")
        raise TransferError(f"Failed to transfer from device to host: {e}") from e


def release_buffer(buf: cl.Buffer) -> None:
    """
    Release a device buffer.

    Raises:
        BufferAllocationError: If the runtime refuses the release
    """
    try:
        buf.release()
    except cl.Error as e:
        logger.error(f"Failed to release device buffer: {e}")
        raise BufferAllocationError(f"Failed to release device buffer: {e}") from e
