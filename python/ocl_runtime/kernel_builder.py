"""
Compile OpenCL C source and resolve kernel entry points.

Programs are always built with -cl-kernel-arg-info so the binder can check
bound arguments against the declared parameters.
"""

import logging
from typing import List, Optional, Sequence

import pyopencl as cl

from . import env_manager
from .errors import BuildError, KernelNotFoundError

logger = logging.getLogger(__name__)

BUILD_LOG_LIMIT = 2048
ARG_INFO_OPTION = "-cl-kernel-arg-info"


def _build_options(options: Optional[Sequence[str]]) -> List[str]:
    """Merge the arg-info flag, OCL_BUILD_OPTIONS and caller options, de-duplicated."""
    if isinstance(options, str):
        options = options.split()
    merged = [ARG_INFO_OPTION] + env_manager.get_build_options() + list(options or [])
    seen = set()
    return [opt for opt in merged if not (opt in seen or seen.add(opt))]


def _truncate_log(log: str) -> str:
    if len(log) <= BUILD_LOG_LIMIT:
        return log
    return log[:BUILD_LOG_LIMIT]


def build_program(
    context: cl.Context,
    device: cl.Device,
    source: str,
    options: Optional[Sequence[str]] = None,
) -> cl.Program:
    """
    Compile kernel source for one device.

    Args:
        context: Context the program belongs to
        device: Device to build for
        source: OpenCL C source text
        options: Extra compiler options

    Returns:
        The built program

    Raises:
        BuildError: If the source does not compile; carries the compiler log
    """
    opts = _build_options(options)
    logger.info(f"[Build] Compiling program for {device.name.strip()}")
    logger.debug(f"  Options: {' '.join(opts)}")

    program = cl.Program(context, source)
    try:
        program.build(options=opts, devices=[device])
    except cl.Error as e:
        # pyopencl folds the per-device compiler log into the error text.
        build_log = _truncate_log(str(e).strip())
        logger.error(f"[Build] Failed to build program executable!\n{build_log}")
        raise BuildError("Failed to build program executable", build_log=build_log) from e

    build_log = _read_build_log(program, device)
    if build_log:
        logger.debug(f"[Build] Compiler output:\n{build_log}")
    return program


def _read_build_log(program: cl.Program, device: cl.Device) -> str:
    """Build log of a program, empty when the runtime has none to give."""
    try:
        log = program.get_build_info(device, cl.program_build_info.LOG)
    except cl.Error as e:
        logger.debug(f"[Build] Build log not available: {e}")
        return ""
    if isinstance(log, bytes):
        log = log.decode("utf-8", errors="replace")
    return (log or "").strip()


def extract_kernel(program: cl.Program, name: str) -> cl.Kernel:
    """
    Resolve a named entry point into a dispatchable kernel.

    Each call returns a new, independent kernel object, so the same entry point
    can be extracted several times and bound to different arguments.

    Raises:
        KernelNotFoundError: If the name is unknown or the program is unusable
    """
    try:
        kernel = cl.Kernel(program, name)
        # Some runtimes defer name errors until the kernel is queried.
        kernel.num_args
    except cl.Error as e:
        logger.error(f"Failed to create compute kernel '{name}': {e}")
        raise KernelNotFoundError(f"Failed to create compute kernel '{name}': {e}") from e
    logger.debug(f"Created kernel '{name}' with {kernel.num_args} parameters")
    return kernel
