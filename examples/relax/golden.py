"""
Golden script for the relax example.

A rod of N points starts cold except for its left end, which holds HEAT.
Every step replaces each interior point by 0.25 * left + 0.5 * self +
0.25 * right and keeps both ends fixed, so heat flows in from the left until
no point moves by more than EPS in one step.

The CodeRunner check runs a fixed number of steps (the "iterations"
parameter of each case) with "a" and "b" swapped between launches; driver.py runs until
the kernel reports the rod stable.
"""

import numpy as np

# Both vectors are written: they alternate as input and output
__outputs__ = ["a", "b"]

# Kernel parameter order: relax(in, out, stable, eps, count)
ARG_ORDER = ["a", "b", "stable", "eps", "n"]

PARAMS_LIST = [
    {"n": 1024, "heat": 100.0, "eps": 0.1, "iterations": 25},
    {"n": 1000, "heat": 100.0, "eps": 0.1, "iterations": 10},
]

RTOL = 1e-12
ATOL = 1e-12

N = 10000000
EPS = 0.1
HEAT = 100.0
LOCAL_SIZE = 32


def initial_rod(n: int, heat: float) -> np.ndarray:
    """Cold rod whose left end holds the heat."""
    rod = np.zeros(n, dtype=np.float64)
    if n > 0:
        rod[0] = heat
    return rod


def relax_step(src: np.ndarray, dst: np.ndarray) -> float:
    """
    One relaxation step from src into dst.

    Returns:
        Largest absolute change of any point
    """
    n = src.size
    if n == 0:
        return 0.0
    dst[0] = src[0]
    dst[n - 1] = src[n - 1]
    if n > 2:
        dst[1:-1] = 0.25 * src[:-2] + 0.5 * src[1:-1] + 0.25 * src[2:]
    return float(np.max(np.abs(dst - src)))


def relax_reference(n: int, heat: float, eps: float, max_steps: int = 1000000):
    """
    Relax a rod on the host until it is stable.

    Returns:
        Tuple of (final rod, number of steps)
    """
    src = initial_rod(n, heat)
    dst = src.copy()
    for step in range(1, max_steps + 1):
        change = relax_step(src, dst)
        src, dst = dst, src
        if change <= eps:
            return src, step
    raise RuntimeError(f"Rod not stable after {max_steps} steps")


def generate_inputs(params: dict) -> dict:
    """
    Generate kernel arguments.

    Creates:
    - a: rod with HEAT at index 0 (first input)
    - b: copy of a (first output)
    - stable: one-element flag the kernel clears
    - eps, n: scalars

    Returns:
        Dict of kernel argument values keyed by name
    """
    n = params["n"]
    a = initial_rod(n, params["heat"])
    return {
        "a": a,
        "b": a.copy(),
        "stable": np.ones(1, dtype=np.bool_),
        "eps": float(params["eps"]),
        "n": int(n),
    }


def compute_golden(tensors: dict, params: dict) -> None:
    """
    Ping-pong the expected vectors in place for the configured step count.

    Step k reads a and writes b when k is even, and the other way round when
    k is odd, matching the argument swap between launches.
    """
    a = tensors["a"]
    b = tensors["b"]
    for step in range(params["iterations"]):
        if step % 2 == 0:
            relax_step(a, b)
        else:
            relax_step(b, a)


if __name__ == "__main__":
    rod, steps = relax_reference(1000, HEAT, EPS)
    print("=== Relax Golden Test ===")
    print(f"n=1000, heat={HEAT}, eps={EPS}")
    print(f"Stable after {steps} steps")
    print(f"Rod range: [{rod.min():.4f}, {rod.max():.4f}]")
    print(f"Rod sum: {rod.sum():.4f}")
