import numpy as np
import pytest
import taichi as ti

import pyfastscan as pf


@pytest.fixture(scope="session", autouse=True)
def taichi_runtime():
    if not pf.device.is_initialised():
        pf.device.initialise(ti.cpu)
    yield


@pytest.fixture
def ctx():
    return pf.device.DeviceContext()


@pytest.fixture
def small_ctx():
    # B = 8 elements per block, capacity 64: forces the two-level path early
    return pf.device.DeviceContext(max_workgroup_size=4)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)
