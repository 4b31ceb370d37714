"""
CodeRunner - Simplified test framework for OpenCL kernels.

This module provides a simplified interface for checking a kernel against a
numpy reference. Users only need to provide:
1. A kernels directory with kernel_config.py (and the .cl source it names)
2. A golden.py script with generate_inputs() and compute_golden()

Usage:
    # Command line
    python examples/scripts/run_example.py --kernels ./my_test/kernels --golden ./my_test/golden.py

    # In Python
    from ocl_runtime import CodeRunner
    runner = CodeRunner("./kernels", "./golden.py")
    runner.run()

kernel_config.py interface:
    KERNEL = {"source": "/abs/path/kernel.cl", "name": "entry_point"}
    BUILD_OPTIONS = ["-cl-fast-relaxed-math"]      # optional
    RUNTIME_CONFIG = {                            # optional
        "device": "gpu",          # device class, OCL_DEVICE_TYPE by default
        "global_size": [1024],    # default: size of the first array argument
        "local_size": None,       # default: chosen by the runtime
        "iterations": 1,          # launches per case; a case's params may override it
        "swap_args": None,        # ("in", "out"): swapped between launches
    }

Golden.py interface:
    # Required functions
    def generate_inputs(params: dict) -> dict:
        '''Return dict of kernel arguments: numpy arrays and scalars'''
        return {"a": np.array(...), "b": np.array(...), "out_f": np.zeros(...), "n": 1024}

    def compute_golden(tensors: dict, params: dict) -> None:
        '''Compute expected outputs in-place'''
        tensors["out_f"][:] = tensors["a"] + tensors["b"]

    # Optional configuration
    PARAMS_LIST = [{"size": 1024}, {"size": 2048}]  # Multiple test cases
    RTOL = 1e-5  # Relative tolerance
    ATOL = 1e-5  # Absolute tolerance
    __outputs__ = ["out_f"]  # Explicit output names (or use 'out_' prefix)
    ARG_ORDER = ["a", "b", "out_f", "n"]  # Kernel parameter order (default: dict order)

compute_golden() receives copies of the generated values as they were before
the kernel ran, so in-place kernels (read and write the same array) can be
checked too.
"""

import importlib.util
import logging
import numbers
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from numpy.testing import assert_allclose

from .device_session import DeviceSession
from .env_manager import setup_logging_if_needed
from .kernel_args import KernelArg, infer_kernel_arg

logger = logging.getLogger(__name__)


def _to_numpy(value):
    """Convert tensors to numpy arrays and numpy scalars to Python scalars."""
    if hasattr(value, 'detach'):
        # PyTorch tensor
        return value.detach().cpu().numpy()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray) and value.ndim == 0:
        return value.item()
    return value


def _load_module_from_path(module_path: Path, module_name: str):
    """Dynamically load a Python module from file path."""
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load module from {module_path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


class CodeRunner:
    """
    Simplified test runner that loads kernel config and golden script.

    This class automates:
    - Loading kernel_config.py and golden.py dynamically
    - Building kernel argument descriptors from numpy arrays and scalars
    - Converting PyTorch tensors to numpy
    - Separating inputs and outputs based on naming convention
    - Running the full test flow on an OpenCL device

    Args:
        kernels_dir: Path to kernels directory containing kernel_config.py
        golden_path: Path to golden.py script
        device_class: Device class ("gpu", "cpu", ...); overrides RUNTIME_CONFIG
    """

    def __init__(
        self,
        kernels_dir: str,
        golden_path: str,
        device_class: Optional[str] = None,
    ):
        # Setup logging if not already configured (e.g., when used directly, not via run_example.py)
        setup_logging_if_needed()

        self.kernels_dir = Path(kernels_dir).resolve()
        self.golden_path = Path(golden_path).resolve()

        # Load configurations
        self._kernel_config = self._load_kernel_config()
        self._golden_module = self._load_golden_module()

        # Extract kernel configuration
        self.kernel = self._kernel_config.KERNEL
        self.build_options = list(getattr(self._kernel_config, 'BUILD_OPTIONS', []))

        # Extract golden configuration
        self.params_list = getattr(self._golden_module, 'PARAMS_LIST', [{}])
        self.rtol = getattr(self._golden_module, 'RTOL', 1e-5)
        self.atol = getattr(self._golden_module, 'ATOL', 1e-5)
        self.output_names = getattr(self._golden_module, '__outputs__', None)
        self.arg_order = getattr(self._golden_module, 'ARG_ORDER', None)

        # Runtime configuration - read from kernel_config or use defaults
        runtime_config = getattr(self._kernel_config, 'RUNTIME_CONFIG', {})
        self.global_size = runtime_config.get('global_size')
        self.local_size = runtime_config.get('local_size')
        self.iterations = int(runtime_config.get('iterations', 1))
        self.swap_args = runtime_config.get('swap_args')

        # Resolve device class from RUNTIME_CONFIG if not explicitly provided
        if device_class is None:
            device_class = runtime_config.get('device')
        self.device_class = device_class

        if self.iterations < 1:
            raise ValueError(f"RUNTIME_CONFIG iterations must be >= 1, got {self.iterations}")

    def _load_kernel_config(self):
        """Load kernel_config.py from kernels directory."""
        config_path = self.kernels_dir / "kernel_config.py"
        if not config_path.exists():
            raise FileNotFoundError(
                f"kernel_config.py not found in {self.kernels_dir}\n"
                f"Expected: {config_path}"
            )
        module = _load_module_from_path(config_path, f"kernel_config_{id(self)}")
        if not hasattr(module, 'KERNEL'):
            raise AttributeError(
                f"kernel_config.py must define KERNEL = {{'source': ..., 'name': ...}}\n"
                f"File: {config_path}"
            )
        return module

    def _load_golden_module(self):
        """Load golden.py script."""
        if not self.golden_path.exists():
            raise FileNotFoundError(f"Golden script not found: {self.golden_path}")

        module = _load_module_from_path(self.golden_path, f"golden_{id(self)}")

        # Validate required functions
        if not hasattr(module, 'generate_inputs'):
            raise AttributeError(
                f"golden.py must define generate_inputs(params) function\n"
                f"File: {self.golden_path}"
            )
        if not hasattr(module, 'compute_golden'):
            raise AttributeError(
                f"golden.py must define compute_golden(tensors, params) function\n"
                f"File: {self.golden_path}"
            )

        return module

    def _identify_outputs(self, tensors: Dict[str, Any]) -> Tuple[Dict, Dict]:
        """
        Separate inputs and outputs from the generated values.

        Uses either explicit __outputs__ list or 'out_' prefix convention.
        Only arrays can be outputs.

        Returns:
            Tuple of (inputs_dict, outputs_dict)
        """
        if self.output_names:
            is_output = lambda k: k in self.output_names
        else:
            is_output = lambda k: k.startswith('out_')

        outputs = {k: v for k, v in tensors.items() if is_output(k) and isinstance(v, np.ndarray)}
        inputs = {k: v for k, v in tensors.items() if k not in outputs}

        if not outputs:
            raise ValueError(
                "No output arrays identified. Either:\n"
                "1. Define __outputs__ = ['array_name'] in golden.py, or\n"
                "2. Use 'out_' prefix for output array names (e.g., 'out_result')"
            )

        return inputs, outputs

    def _resolve_order(self, tensors: Dict[str, Any]) -> List[str]:
        order = list(self.arg_order) if self.arg_order else list(tensors.keys())
        for name in order:
            if name not in tensors:
                raise KeyError(
                    f"Argument '{name}' from ARG_ORDER not found in generate_inputs() result.\n"
                    f"Available arguments: {list(tensors.keys())}"
                )
        return order

    def _build_kernel_args(self, tensors: Dict[str, Any]) -> List[KernelArg]:
        """
        Build kernel argument descriptors from the generated values.

        float64/float32/bool arrays become array arguments, integers become
        IntConstant and floats DoubleConstant, in ARG_ORDER.
        """
        return [infer_kernel_arg(tensors[name]) for name in self._resolve_order(tensors)]

    def _resolve_global_size(self, tensors: Dict[str, Any]) -> Tuple[int, ...]:
        if self.global_size is not None:
            size = self.global_size
            return (int(size),) if isinstance(size, numbers.Integral) else tuple(int(s) for s in size)
        for name in self._resolve_order(tensors):
            if isinstance(tensors[name], np.ndarray):
                return (int(tensors[name].size),)
        raise ValueError("RUNTIME_CONFIG has no global_size and the kernel takes no arrays")

    def _swap_indices(self, tensors: Dict[str, Any]) -> Optional[Tuple[int, int]]:
        if not self.swap_args:
            return None
        order = self._resolve_order(tensors)
        first, second = self.swap_args
        return order.index(first), order.index(second)

    def run(self) -> None:
        """
        Execute the full test flow:
        1. Open the device session
        2. Build the kernel program
        3. For each params in params_list:
           - Generate inputs using golden.py
           - Bind arguments and launch `iterations` times
           - Read back results and compare with golden
        4. Report accumulated kernel time
        """
        logger.info(f"=== Opening Device ({self.device_class or 'default'}) ===")
        with DeviceSession.open(self.device_class) as session:
            logger.info(f"=== Building Kernel: {self.kernel['name']} ===")
            source = Path(self.kernel["source"]).read_text()
            program = session.build(source, self.build_options)

            total_cases = len(self.params_list)
            for case_idx, params in enumerate(self.params_list):
                logger.info("=" * 60)
                logger.info(f"=== Case {case_idx + 1}/{total_cases}: {params} ===")
                logger.info("=" * 60)

                # Generate arguments using golden.py
                logger.info("=== Generating Inputs ===")
                tensors = self._golden_module.generate_inputs(params)

                # Convert any PyTorch tensors to numpy
                tensors = {k: _to_numpy(v) for k, v in tensors.items()}
                initial = {k: (v.copy() if isinstance(v, np.ndarray) else v) for k, v in tensors.items()}

                # Identify inputs and outputs
                inputs, outputs = self._identify_outputs(tensors)
                logger.info(f"Inputs: {list(inputs.keys())}")
                logger.info(f"Outputs: {list(outputs.keys())}")

                args = self._build_kernel_args(tensors)
                logger.debug(f"Argument order: {self._resolve_order(tensors)}")

                kernel = session.extract_kernel(program, self.kernel["name"])
                session.bind(kernel, args)

                global_size = self._resolve_global_size(tensors)
                swap = self._swap_indices(tensors)
                iterations = int(params.get("iterations", self.iterations))
                logger.info(
                    f"=== Launching Kernel: global={global_size} local={self.local_size} "
                    f"iterations={iterations} ==="
                )
                for iteration in range(iterations):
                    if iteration > 0 and swap is not None:
                        session.swap_arguments(kernel, *swap)
                    session.launch(kernel, global_size, self.local_size)

                session.sync(kernel)
                session.release_buffers(kernel)
                logger.info("Launch completed successfully")

                # Compute golden and compare
                logger.info("=== Comparing Results ===")
                self._compare_with_golden(initial, outputs, params)

                logger.info(f"=== Case {case_idx + 1}/{total_cases} Passed ===")

            session.report_timing()

        logger.info("=" * 60)
        logger.info(f"=== All {total_cases} cases passed ===")
        logger.info("=" * 60)

    def _compare_with_golden(
        self,
        initial: Dict[str, Any],
        outputs: Dict[str, np.ndarray],
        params: Dict[str, Any],
    ) -> None:
        """Compare outputs with golden values computed from the initial values."""
        golden_tensors = {k: (v.copy() if isinstance(v, np.ndarray) else v) for k, v in initial.items()}

        # Compute golden
        self._golden_module.compute_golden(golden_tensors, params)

        # Compare each output
        for name in outputs:
            actual = outputs[name]
            expected = golden_tensors[name]
            logger.info(f"Comparing {name}: shape={actual.shape}, dtype={actual.dtype}")

            # Show first 10 values
            if actual.size > 0:
                flat_actual = actual.flatten()
                flat_expected = expected.flatten()
                n_show = min(10, flat_actual.size)
                logger.debug(f"  First {n_show} actual:   {flat_actual[:n_show]}")
                logger.debug(f"  First {n_show} expected: {flat_expected[:n_show]}")

            assert_allclose(
                actual,
                expected,
                rtol=self.rtol,
                atol=self.atol,
                err_msg=f"Output '{name}' does not match golden",
            )
            matched = np.sum(np.isclose(actual, expected, rtol=self.rtol, atol=self.atol))
            logger.info(f"  {name}: PASS ({matched}/{actual.size} elements matched)")
