"""
Golden script for the vector example.

This script defines the input data generation and expected output computation
for the vector example.

Computation:
    f = (a + b + 1) * (a + b + 2)
    where a=2.0, b=3.0, so f=42.0
"""

import numpy as np

# Output tensor names (alternatively, use 'out_' prefix convention)
__outputs__ = ["f"]

# Kernel parameter order
# This MUST match the parameters of vector_add in vector_add.cl
# Args layout: [ptr_a, ptr_b, ptr_f, n]
ARG_ORDER = ["a", "b", "f", "n"]

PARAMS_LIST = [
    {"rows": 128, "cols": 128},
    {"rows": 3, "cols": 333},
]

# Comparison tolerances
RTOL = 1e-5
ATOL = 1e-5


def generate_inputs(params: dict) -> dict:
    """
    Generate input and output tensors.

    Creates:
    - a: rows * cols elements, all 2.0
    - b: rows * cols elements, all 3.0
    - f: rows * cols elements, zeros (output)
    - n: element count

    Returns:
        Dict of kernel arguments with names as keys
    """
    size = params["rows"] * params["cols"]

    return {
        "a": np.full(size, 2.0, dtype=np.float32),
        "b": np.full(size, 3.0, dtype=np.float32),
        "f": np.zeros(size, dtype=np.float32),
        "n": size,
    }


def compute_golden(tensors: dict, params: dict) -> None:
    """
    Compute expected output in-place.

    f = (a + b + 1) * (a + b + 2)
      = (2 + 3 + 1) * (2 + 3 + 2)
      = 6 * 7
      = 42

    Args:
        tensors: Dict containing all tensors (inputs and outputs)
        params: Parameter dict (unused in this example)
    """
    a = tensors["a"]
    b = tensors["b"]
    tensors["f"][:] = (a + b + 1) * (a + b + 2)
