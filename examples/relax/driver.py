#!/usr/bin/env python3
"""
Heat relaxation driver.

Relaxes a rod heated at its left end until no point moves by more than eps
in one step, running one kernel launch per step on the selected device.

Usage:
    python examples/relax/driver.py
    python examples/relax/driver.py --size 100000 --device cpu --log-level debug
"""

import argparse
import importlib.util
import logging
import time
from pathlib import Path

import numpy as np

from ocl_runtime import BooleanArray, DeviceSession, DoubleArray, DoubleConstant, IntConstant

_EXAMPLE_ROOT = Path(__file__).parent

_golden_spec = importlib.util.spec_from_file_location("relax_golden", _EXAMPLE_ROOT / "golden.py")
golden = importlib.util.module_from_spec(_golden_spec)
_golden_spec.loader.exec_module(golden)

logger = logging.getLogger(__name__)

KERNEL_SOURCE = _EXAMPLE_ROOT / "kernels" / "relax.cl"


def _round_up(value: int, multiple: int) -> int:
    return ((value + multiple - 1) // multiple) * multiple


def relax_until_stable(
    session: DeviceSession,
    n: int,
    heat: float,
    eps: float,
    local_size: int = golden.LOCAL_SIZE,
    max_steps: int = 1000000,
):
    """
    Relax a rod on the device until it is stable.

    Before each launch the host raises the stability flag; the kernel clears
    it when any point still moves by more than eps. The input and output
    vectors are swapped after every launch.

    Args:
        session: Open device session
        n: Number of points
        heat: Value held at the left end
        eps: Stability threshold
        local_size: Work-group size; the global size is rounded up to it
        max_steps: Upper bound on launches

    Returns:
        Tuple of (final rod, number of steps)

    Raises:
        RuntimeError: If the rod is not stable after max_steps launches
    """
    a = golden.initial_rod(n, heat)
    b = a.copy()
    stable = np.ones(1, dtype=np.bool_)

    kernel = session.setup_kernel(
        KERNEL_SOURCE.read_text(),
        "relax",
        [DoubleArray(a), DoubleArray(b), BooleanArray(stable), DoubleConstant(eps), IntConstant(n)],
    )
    table = session.bound_arguments(kernel)
    global_size = _round_up(max(n, 1), local_size)

    flag = table[2]
    # Host array the current step writes into; alternates between b and a.
    output = b
    for step in range(1, max_steps + 1):
        stable[0] = True
        session.copy_to_device(stable, flag.buffer)
        session.launch(kernel, (global_size,), (local_size,))
        session.copy_from_device(flag.buffer, stable)
        if stable[0]:
            break
        session.swap_arguments(kernel, 0, 1)
        output = a if output is b else b
    else:
        session.release_buffers(kernel)
        raise RuntimeError(f"Rod not stable after {max_steps} steps")

    session.sync(kernel)
    session.release_buffers(kernel)
    logger.info(f"Rod stable after {step} steps")
    return output, step


def main():
    parser = argparse.ArgumentParser(
        description="Relax a heated rod on an OpenCL device until it is stable",
    )
    parser.add_argument("--size", "-n", type=int, default=golden.N, help="Number of points")
    parser.add_argument("--heat", type=float, default=golden.HEAT, help="Heat held at the left end")
    parser.add_argument("--eps", type=float, default=golden.EPS, help="Stability threshold")
    parser.add_argument("--local-size", type=int, default=golden.LOCAL_SIZE, help="Work-group size")
    parser.add_argument("--device", "-d", default=None,
                        help="Device class: gpu, cpu, accelerator or all (default: OCL_DEVICE_TYPE or gpu)")
    parser.add_argument("--log-level", default="info", choices=["error", "warn", "info", "debug"],
                        help="Logging level (default: info)")
    args = parser.parse_args()

    level_map = {
        "error": logging.ERROR,
        "warn": logging.WARNING,
        "info": logging.INFO,
        "debug": logging.DEBUG,
    }
    logging.basicConfig(level=level_map[args.log_level], format='[%(levelname)s] %(message)s', force=True)

    with DeviceSession.open(args.device) as session:
        session.print_device_info()
        start = time.perf_counter()
        rod, steps = relax_until_stable(session, args.size, args.heat, args.eps, args.local_size)
        wall_ms = (time.perf_counter() - start) * 1000.0

        print(f"Number of iterations: {steps}")
        print(f"Rod sum: {rod.sum():f}, max: {rod.max():f}")
        print(f"total wall time: {wall_ms:f} msec")
        session.report_timing()


if __name__ == "__main__":
    main()
