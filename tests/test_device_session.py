import numpy as np
import pytest

from ocl_runtime import DeviceSession, FloatArray, IntConstant, SessionClosedError


def _vector_args(n):
    return [
        FloatArray(np.ones(n, dtype=np.float32)),
        FloatArray(np.ones(n, dtype=np.float32)),
        FloatArray(np.zeros(n, dtype=np.float32)),
        IntConstant(n),
    ]


def test_open_unknown_class():
    with pytest.raises(ValueError):
        DeviceSession.open("fpga")


def test_teardown_is_idempotent(session):
    assert session.is_open
    session.teardown()
    assert not session.is_open
    session.teardown()


def test_operations_after_teardown_fail(session):
    session.teardown()
    with pytest.raises(SessionClosedError):
        session.allocate_buffer(8)
    with pytest.raises(SessionClosedError):
        session.build("__kernel void k() {}")
    with pytest.raises(SessionClosedError):
        session.max_work_items(0)
    with pytest.raises(SessionClosedError):
        session.release_buffers()


def test_context_manager_tears_down(open_session):
    with open_session() as session:
        assert session.is_open
    assert not session.is_open


def test_max_work_items(session):
    assert session.max_work_items(0) > 0
    assert session.max_work_items(3) == 0
    assert session.max_work_items(-1) == 0


def test_describe_device(session):
    text = session.describe_device()
    assert session.device.name.strip() in text
    assert "DEVICE_MAX_WORK_GROUP_SIZE" in text
    assert "DEVICE_MAX_WORK_ITEM_SIZES" in text


def test_two_sessions_are_independent(open_session, kernel_source):
    first = open_session()
    second = open_session()
    source = kernel_source("vector_example/kernels/vector_add.cl")
    kernel = first.setup_kernel(source, "vector_add", _vector_args(8))

    second.teardown()
    first.run(kernel, (8,))
    assert first.bound_arguments(kernel)[2].arg.data[0] == pytest.approx(12.0)


def test_capacity_comes_from_environment(monkeypatch, open_session):
    monkeypatch.setenv("OCL_MAX_KERNEL_ARGS", "3")
    assert open_session().max_kernel_args == 3
    assert open_session(max_kernel_args=5).max_kernel_args == 5


def test_rebinding_releases_previous_table(session, kernel_source):
    kernel = session.setup_kernel(
        kernel_source("vector_example/kernels/vector_add.cl"), "vector_add", _vector_args(8)
    )
    old_table = session.bound_arguments(kernel)
    session.bind(kernel, _vector_args(16))
    assert all(entry.released for _, entry in old_table.arrays())
    assert session.bound_arguments(kernel) is not old_table


def test_release_buffers(session, kernel_source):
    kernel = session.setup_kernel(
        kernel_source("vector_example/kernels/vector_add.cl"), "vector_add", _vector_args(8)
    )
    assert session.release_buffers(kernel) == 3
    assert session.release_buffers(kernel) == 0
    assert session.release_buffers() == 0
    with pytest.raises(KeyError):
        session.bound_arguments(kernel)


def test_release_all_drops_every_table(session, kernel_source):
    source = kernel_source("vector_example/kernels/vector_add.cl")
    first = session.setup_kernel(source, "vector_add", _vector_args(8))
    second = session.setup_kernel(source, "vector_add", _vector_args(4))
    assert session.release_buffers() == 6
    assert session.release_buffers() == 0
    assert session._tables == {}
    for kernel in (first, second):
        with pytest.raises(KeyError):
            session.bound_arguments(kernel)


def test_unbound_kernel_has_no_table(session, kernel_source):
    program = session.build(kernel_source("vector_example/kernels/vector_add.cl"))
    kernel = session.extract_kernel(program, "vector_add")
    with pytest.raises(KeyError):
        session.bound_arguments(kernel)
