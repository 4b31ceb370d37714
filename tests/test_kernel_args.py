import numpy as np
import pytest

from ocl_runtime import (
    BooleanArray,
    BoundArgument,
    BoundArguments,
    DoubleArray,
    DoubleConstant,
    FloatArray,
    IntConstant,
    infer_kernel_arg,
)


def test_array_count_defaults_to_size():
    arg = DoubleArray(np.zeros((4, 5)))
    assert arg.count == 20
    assert arg.nbytes == 160


def test_array_partial_count():
    arg = FloatArray(np.zeros(8, dtype=np.float32), count=3)
    assert arg.count == 3
    assert arg.nbytes == 12


def test_array_rejects_wrong_dtype():
    with pytest.raises(TypeError):
        DoubleArray(np.zeros(4, dtype=np.float32))
    with pytest.raises(TypeError):
        FloatArray(np.zeros(4))
    with pytest.raises(TypeError):
        DoubleArray([1.0, 2.0])


def test_array_rejects_non_contiguous_and_bad_count():
    with pytest.raises(ValueError):
        DoubleArray(np.zeros((4, 4))[:, 1])
    with pytest.raises(ValueError):
        DoubleArray(np.zeros(4), count=5)
    with pytest.raises(ValueError):
        DoubleArray(np.zeros(4), count=-1)


def test_boolean_array_is_one_byte_per_element_and_not_synced():
    arg = BooleanArray(np.ones(7, dtype=np.bool_))
    assert arg.nbytes == 7
    assert not BooleanArray.auto_sync
    assert DoubleArray.auto_sync and FloatArray.auto_sync


def test_int_constant_range():
    assert IntConstant(0).to_cl().dtype == np.uint32
    assert IntConstant(2**32 - 1).to_cl() == np.uint32(2**32 - 1)
    with pytest.raises(ValueError):
        IntConstant(-1)
    with pytest.raises(ValueError):
        IntConstant(2**32)
    with pytest.raises(TypeError):
        IntConstant(True)
    with pytest.raises(TypeError):
        IntConstant(1.5)


def test_double_constant():
    assert DoubleConstant(0.1).to_cl() == np.float64(0.1)
    assert DoubleConstant(3).to_cl().dtype == np.float64
    with pytest.raises(TypeError):
        DoubleConstant("0.1")
    with pytest.raises(TypeError):
        DoubleConstant(False)


def test_infer_kernel_arg():
    assert isinstance(infer_kernel_arg(np.zeros(2)), DoubleArray)
    assert isinstance(infer_kernel_arg(np.zeros(2, dtype=np.float32)), FloatArray)
    assert isinstance(infer_kernel_arg(np.zeros(2, dtype=np.bool_)), BooleanArray)
    assert isinstance(infer_kernel_arg(7), IntConstant)
    assert isinstance(infer_kernel_arg(np.int64(7)), IntConstant)
    assert isinstance(infer_kernel_arg(0.5), DoubleConstant)
    existing = IntConstant(3)
    assert infer_kernel_arg(existing) is existing


def test_infer_kernel_arg_rejects_unsupported():
    with pytest.raises(TypeError):
        infer_kernel_arg(np.zeros(2, dtype=np.int32))
    with pytest.raises(TypeError):
        infer_kernel_arg(True)
    with pytest.raises(TypeError):
        infer_kernel_arg("x")


def test_bound_arguments_sync_order_skips_booleans_and_scalars():
    table = BoundArguments(kernel=None, entries=[
        BoundArgument(DoubleArray(np.zeros(2)), buffer=object()),
        BoundArgument(BooleanArray(np.zeros(1, dtype=np.bool_)), buffer=object()),
        BoundArgument(IntConstant(2)),
        BoundArgument(FloatArray(np.zeros(2, dtype=np.float32)), buffer=object()),
    ])
    assert [i for i, _ in table.arrays()] == [0, 1, 3]
    assert [i for i, _ in table.synced_arrays()] == [0, 3]
    assert not table[2].released
    table[0].buffer = None
    assert table[0].released
