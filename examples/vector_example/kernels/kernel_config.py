"""
Kernel Configuration

Defines the kernel used by the vector example.
"""

from pathlib import Path

_KERNELS_ROOT = Path(__file__).parent

# Kernel config
KERNEL = {"source": str(_KERNELS_ROOT / "vector_add.cl"), "name": "vector_add"}

# Extra compiler options
BUILD_OPTIONS = ["-cl-mad-enable"]

# Runtime configuration
RUNTIME_CONFIG = {
    "local_size": None,
    "iterations": 1,
}
