"""
Kernel Configuration

Defines the relaxation kernel used by the relax example. Each launch performs
one step; the input and output vectors are swapped between launches so the
next step reads what the previous one wrote.
"""

from pathlib import Path

_KERNELS_ROOT = Path(__file__).parent

# Kernel config
KERNEL = {"source": str(_KERNELS_ROOT / "relax.cl"), "name": "relax"}

BUILD_OPTIONS = []

# Runtime configuration
RUNTIME_CONFIG = {
    "global_size": None,  # one work item per element
    "local_size": None,
    "iterations": 1,  # overridden per case by params["iterations"]
    "swap_args": ("a", "b"),
}
