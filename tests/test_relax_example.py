import numpy as np
import pytest


@pytest.fixture
def golden(example_module):
    return example_module("relax/golden.py")


@pytest.fixture
def driver(example_module):
    return example_module("relax/driver.py")


def test_reference_relax_step_keeps_ends(golden):
    src = golden.initial_rod(5, 100.0)
    dst = np.empty_like(src)
    change = golden.relax_step(src, dst)
    np.testing.assert_allclose(dst, [100.0, 25.0, 0.0, 0.0, 0.0])
    assert change == pytest.approx(25.0)


def test_reference_terminates(golden):
    rod, steps = golden.relax_reference(10, golden.HEAT, golden.EPS)
    assert steps > 1
    assert rod[0] == golden.HEAT and rod[-1] == 0.0
    assert np.all(np.diff(rod) <= 0)


def test_small_rod_matches_reference(session, golden, driver):
    rod, steps = driver.relax_until_stable(session, 10, golden.HEAT, golden.EPS, local_size=32)
    expected, expected_steps = golden.relax_reference(10, golden.HEAT, golden.EPS)
    assert steps == expected_steps
    np.testing.assert_allclose(rod, expected, rtol=1e-12, atol=1e-12)
    assert session.timer.launches == steps


@pytest.mark.parametrize("n", [1000, 4099])
def test_rod_matches_reference(session, golden, driver, n):
    rod, steps = driver.relax_until_stable(session, n, golden.HEAT, golden.EPS)
    expected, expected_steps = golden.relax_reference(n, golden.HEAT, golden.EPS)
    assert steps == expected_steps
    np.testing.assert_allclose(rod, expected, rtol=1e-12, atol=1e-12)
    assert np.all(np.diff(rod) <= 0)


def test_driver_gives_up(session, golden, driver):
    with pytest.raises(RuntimeError):
        driver.relax_until_stable(session, 100, golden.HEAT, golden.EPS, max_steps=2)
    assert session.release_buffers() == 0


def test_repeated_runs_leave_no_tables(session, golden, driver):
    for _ in range(5):
        driver.relax_until_stable(session, 10, golden.HEAT, golden.EPS, local_size=32)
    assert len(session._tables) == 0
    assert session.release_buffers() == 0
