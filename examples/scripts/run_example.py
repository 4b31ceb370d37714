#!/usr/bin/env python3
"""
Run an example kernel and compare its results with the golden script.

Usage:
    python examples/scripts/run_example.py --kernels examples/vector_example/kernels \
        --golden examples/vector_example/golden.py
    python examples/scripts/run_example.py -k examples/relax/kernels -g examples/relax/golden.py \
        --device cpu --log-level debug
"""

import argparse
import logging
import os
import sys

from ocl_runtime import CodeRunner, HarnessError
from ocl_runtime.env_manager import setup_logging_if_needed

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run an OpenCL kernel example and compare against its golden script",
    )
    parser.add_argument("--kernels", "-k", required=True,
                        help="Kernels directory containing kernel_config.py")
    parser.add_argument("--golden", "-g", required=True,
                        help="Path to golden.py")
    parser.add_argument("--device", "-d", default=None,
                        help="Device class: gpu, cpu, accelerator or all "
                             "(default: RUNTIME_CONFIG, then OCL_DEVICE_TYPE, then gpu)")
    parser.add_argument("--log-level", default=None, choices=["error", "warn", "info", "debug"],
                        help="Logging level (default: OCL_LOG_LEVEL or info)")
    args = parser.parse_args()

    if args.log_level:
        os.environ["OCL_LOG_LEVEL"] = args.log_level
    setup_logging_if_needed()

    try:
        runner = CodeRunner(args.kernels, args.golden, device_class=args.device)
        runner.run()
    except (HarnessError, AssertionError) as e:
        logger.error(f"TEST FAILED: {e}")
        return 1
    except (FileNotFoundError, AttributeError, KeyError, TypeError, ValueError) as e:
        logger.error(f"Invalid example: {e}")
        return 2

    logger.info("TEST PASSED")
    return 0


if __name__ == "__main__":
    sys.exit(main())
