import itertools
import time

import numpy as np
import pytest

from ocl_runtime import (
    BooleanArray,
    DispatchError,
    DoubleArray,
    DoubleConstant,
    FloatArray,
    IntConstant,
    KernelTimer,
    TransferError,
)
from ocl_runtime.dispatcher import _as_extents, launch_kernel, sync_results


def _relax_kernel(session, kernel_source, n, stable):
    a = np.zeros(n)
    a[n // 2] = 100.0
    b = a.copy()
    kernel = session.setup_kernel(
        kernel_source("relax/kernels/relax.cl"),
        "relax",
        [DoubleArray(a), DoubleArray(b), BooleanArray(stable), DoubleConstant(0.1), IntConstant(n)],
    )
    return kernel, a, b


@pytest.mark.parametrize("global_size, local_size", [
    ((1, 1, 1, 1), None),
    ((), None),
    ((0,), None),
    ((8,), (0,)),
    ((8, 8), (4,)),
])
def test_malformed_extents(global_size, local_size):
    timer = KernelTimer()
    with pytest.raises(ValueError):
        launch_kernel(None, None, global_size, local_size, timer)
    assert timer.launches == 0


def test_run_syncs_float_arrays_in_bind_order(session, kernel_source):
    n = 100
    a = np.full(n, 2.0, dtype=np.float32)
    b = np.full(n, 3.0, dtype=np.float32)
    f = np.zeros(n, dtype=np.float32)
    kernel = session.setup_kernel(
        kernel_source("vector_example/kernels/vector_add.cl"),
        "vector_add",
        [FloatArray(a), FloatArray(b), FloatArray(f), IntConstant(n)],
    )
    result = session.run(kernel, n)
    assert result.synced == (0, 1, 2)
    assert result.elapsed_ms >= 0.0
    np.testing.assert_allclose(f, np.full(n, 42.0))
    np.testing.assert_allclose(a, np.full(n, 2.0))


def test_run_does_not_read_back_boolean_arrays(session, kernel_source):
    stable = np.ones(1, dtype=np.bool_)
    kernel, a, b = _relax_kernel(session, kernel_source, 16, stable)

    result = session.run(kernel, (16,), (16,))
    assert result.synced == (0, 1)
    assert b[8] == pytest.approx(50.0)
    assert stable[0]

    table = session.bound_arguments(kernel)
    session.copy_from_device(table[2].buffer, stable)
    assert not stable[0]


def test_kernel_time_is_sum_of_launches(open_session, kernel_source):
    ticks = itertools.count()
    session = open_session(clock=lambda: next(ticks) * 0.001)
    stable = np.ones(1, dtype=np.bool_)
    kernel, _, _ = _relax_kernel(session, kernel_source, 32, stable)

    elapsed = [session.launch(kernel, (32,)).elapsed_ms for _ in range(3)]
    assert elapsed == pytest.approx([1.0, 1.0, 1.0])
    assert session.kernel_time_ms == pytest.approx(3.0)
    assert session.timer.launches == 3


def test_time_between_launches_is_not_counted(open_session, kernel_source):
    ticks = itertools.count()
    session = open_session(clock=lambda: next(ticks) * 0.001)
    stable = np.ones(1, dtype=np.bool_)
    kernel, _, _ = _relax_kernel(session, kernel_source, 32, stable)

    first = session.launch(kernel, (32,))
    time.sleep(0.05)
    session.copy_to_device(stable, session.bound_arguments(kernel)[2].buffer)
    second = session.launch(kernel, (32,))

    assert session.kernel_time_ms == pytest.approx(first.elapsed_ms + second.elapsed_ms)
    assert session.kernel_time_ms == pytest.approx(2.0)


def test_failed_launch_is_still_timed(session, kernel_source):
    stable = np.ones(1, dtype=np.bool_)
    kernel, _, _ = _relax_kernel(session, kernel_source, 32, stable)
    too_big = session.device.max_work_group_size * 2
    with pytest.raises(DispatchError):
        session.launch(kernel, (too_big,), (too_big,))
    assert session.timer.launches == 1


def test_sync_after_release_fails(session, kernel_source):
    stable = np.ones(1, dtype=np.bool_)
    kernel, _, _ = _relax_kernel(session, kernel_source, 32, stable)
    table = session.bound_arguments(kernel)
    session.release_buffers(kernel)
    with pytest.raises(KeyError):
        session.sync(kernel)
    with pytest.raises(TransferError):
        sync_results(session.queue, table)


def test_numpy_integer_extents(session, kernel_source):
    assert _as_extents(np.int64(32), "Global") == (32,)
    assert _as_extents([np.int32(4), 8], "Global") == (4, 8)

    stable = np.ones(1, dtype=np.bool_)
    kernel, _, _ = _relax_kernel(session, kernel_source, 32, stable)
    session.launch(kernel, np.int64(32), np.int64(32))
    assert session.timer.launches == 1


def test_report_timing(session, capsys):
    session.report_timing()
    assert capsys.readouterr().out.startswith("total time spent in kernel executions:")
