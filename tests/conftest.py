import pytest

from photometrics.pvcam import PVCAM, Library
from photometrics.simulator import Simulator


@pytest.fixture
def sim():
    return Simulator(cameras=("PMSim0", "PMSim1"))


@pytest.fixture
def lib(sim):
    return Library(sim)


@pytest.fixture
def pvcam(sim):
    with PVCAM(sim) as pvcam:
        yield pvcam


@pytest.fixture
def camera(pvcam, sim):
    with pvcam.open_camera("PMSim0") as camera:
        sim.log.clear()
        yield camera


@pytest.fixture
def hcam(camera):
    return camera.handle
