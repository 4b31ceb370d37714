"""
Environment-driven configuration.

All harness defaults that a user may want to change without touching code are
read here, so the rest of the package never calls os.environ directly.

Variables:
    OCL_DEVICE_TYPE      default device class ("gpu", "cpu", "accelerator", "all")
    OCL_MAX_KERNEL_ARGS  maximum number of arguments the binder accepts
    OCL_BUILD_OPTIONS    extra OpenCL compiler options, whitespace separated
    OCL_LOG_LEVEL        error / warn / info / debug
"""

import logging
import os
from typing import List

DEFAULT_DEVICE_TYPE = "gpu"
DEFAULT_MAX_KERNEL_ARGS = 10
DEFAULT_LOG_LEVEL = "info"

DEVICE_TYPES = ("gpu", "cpu", "accelerator", "all")

_LOG_LEVELS = {
    'error': logging.ERROR,
    'warn': logging.WARNING,
    'info': logging.INFO,
    'debug': logging.DEBUG,
}


def get_device_type() -> str:
    """
    Device class to open when the caller does not name one.

    Raises:
        ValueError: If OCL_DEVICE_TYPE holds an unknown class
    """
    device_type = os.environ.get("OCL_DEVICE_TYPE", DEFAULT_DEVICE_TYPE).strip().lower()
    if device_type not in DEVICE_TYPES:
        raise ValueError(
            f"Unknown OCL_DEVICE_TYPE: {device_type}. Supported: {', '.join(DEVICE_TYPES)}"
        )
    return device_type


def get_max_kernel_args() -> int:
    """
    Binder capacity.

    Raises:
        ValueError: If OCL_MAX_KERNEL_ARGS is not a positive integer
    """
    raw = os.environ.get("OCL_MAX_KERNEL_ARGS")
    if raw is None:
        return DEFAULT_MAX_KERNEL_ARGS
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"OCL_MAX_KERNEL_ARGS must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"OCL_MAX_KERNEL_ARGS must be positive, got {value}")
    return value


def get_build_options() -> List[str]:
    """Extra compiler options from OCL_BUILD_OPTIONS."""
    return os.environ.get("OCL_BUILD_OPTIONS", "").split()


def get_log_level() -> int:
    """Logging level named by OCL_LOG_LEVEL, INFO when unset or unknown."""
    level_str = os.environ.get("OCL_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    return _LOG_LEVELS.get(level_str.lower(), logging.INFO)


def setup_logging_if_needed() -> None:
    """
    Setup logging if not already configured.

    Uses OCL_LOG_LEVEL environment variable or defaults to 'info'.
    """
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=get_log_level(),
            format='[%(levelname)s] %(message)s',
            force=True
        )
