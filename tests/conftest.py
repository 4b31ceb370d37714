import importlib.util
import sys
from pathlib import Path

import pyopencl as cl
import pytest

from ocl_runtime import ContextError, DeviceNotFoundError, DeviceSession, TransferError, binder

ROOT = Path(__file__).resolve().parents[1]
EXAMPLES = ROOT / "examples"


def _open_or_skip(**kwargs) -> DeviceSession:
    try:
        return DeviceSession.open("cpu", **kwargs)
    except (DeviceNotFoundError, ContextError) as e:
        pytest.skip(f"no OpenCL CPU device available: {e}")


@pytest.fixture
def open_session():
    """Factory for CPU sessions; every session it opens is torn down afterwards."""
    sessions = []

    def _open(**kwargs):
        session = _open_or_skip(**kwargs)
        sessions.append(session)
        return session

    yield _open
    for session in sessions:
        session.teardown()


@pytest.fixture
def session(open_session):
    return open_session()


@pytest.fixture
def example_module():
    """Load a file under examples/ as a module."""

    def _load(relpath: str):
        path = EXAMPLES / relpath
        name = "example_" + relpath.replace("/", "_").replace(".py", "")
        spec = importlib.util.spec_from_file_location(name, path)
        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        spec.loader.exec_module(module)
        return module

    return _load


@pytest.fixture
def kernel_source():
    def _read(relpath: str) -> str:
        return (EXAMPLES / relpath).read_text()

    return _read


GLOBAL = cl.kernel_arg_address_qualifier.GLOBAL
PRIVATE = cl.kernel_arg_address_qualifier.PRIVATE


class FakeKernel:
    """Kernel stand-in that reports a fixed parameter list and records set_arg."""

    function_name = "fake"

    def __init__(self, params):
        # params: list of (address qualifier, type name)
        self.params = list(params)
        self.set_args = {}

    @property
    def num_args(self):
        return len(self.params)

    def get_arg_info(self, index, param):
        qualifier, type_name = self.params[index]
        if param == cl.kernel_arg_info.ADDRESS_QUALIFIER:
            return qualifier
        return type_name

    def set_arg(self, index, value):
        self.set_args[index] = value


class FakeBuffer:
    def __init__(self, size):
        self.size = size
        self.released = False


class FakeDevice:
    """Records what the binder allocates, copies and releases."""

    def __init__(self):
        self.allocated = []
        self.copies = []
        self.released = []
        self.fail_copy_at = None

    def allocate_buffer(self, context, nbytes):
        buf = FakeBuffer(max(nbytes, 1))
        self.allocated.append(buf)
        return buf

    def copy_to_device(self, queue, host, buf, count=None):
        if self.fail_copy_at is not None and len(self.copies) == self.fail_copy_at:
            raise TransferError("injected copy failure")
        self.copies.append((buf, host, count))

    def release_buffer(self, buf):
        buf.released = True
        self.released.append(buf)


@pytest.fixture
def fake_device(monkeypatch):
    """Route the binder's buffer operations to a FakeDevice."""
    device = FakeDevice()
    monkeypatch.setattr(binder, "allocate_buffer", device.allocate_buffer)
    monkeypatch.setattr(binder, "copy_to_device", device.copy_to_device)
    monkeypatch.setattr(binder, "release_buffer", device.release_buffer)
    return device
