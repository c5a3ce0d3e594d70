import os

import pytest

from photometrics.pvcam import (
    PVCAM,
    Camera,
    DeviceError,
    EncodingError,
    PVCAMError,
    find_library,
    load_library,
)
from photometrics.simulator import EError, Simulator


def test_open_close(sim):
    pvcam = PVCAM(sim)
    assert not pvcam.is_open()
    pvcam.open()
    pvcam.open()
    assert pvcam.is_open()
    assert sim.calls["pl_pvcam_init"] == 1
    pvcam.close()
    pvcam.close()
    assert not pvcam.is_open()
    assert sim.calls["pl_pvcam_uninit"] == 1


def test_init_failure(sim):
    sim.fail("pl_pvcam_init", EError.NO_CAMERA)
    pvcam = PVCAM(sim)
    with pytest.raises(DeviceError) as info:
        pvcam.open()
    assert info.value.code == EError.NO_CAMERA
    assert not pvcam.is_open()
    pvcam.open()
    assert pvcam.is_open()


def test_uninit_failure_is_reported(pvcam, sim):
    sim.fail("pl_pvcam_uninit", EError.NOT_INITIALIZED)
    with pytest.raises(DeviceError):
        pvcam.close()


def test_list_cameras(pvcam, sim):
    sim.log.clear()
    assert pvcam.cameras == ["PMSim0", "PMSim1"]
    assert len(pvcam) == 2
    assert sim.log[:3] == ["pl_cam_get_total", "pl_cam_get_name", "pl_cam_get_name"]


def test_list_cameras_failure(pvcam, sim):
    sim.fail("pl_cam_get_name", EError.NO_CAMERA)
    with pytest.raises(DeviceError):
        pvcam.cameras


def test_list_cameras_requires_init(sim):
    pvcam = PVCAM(sim)
    with pytest.raises(DeviceError) as info:
        pvcam.cameras
    assert info.value.code == EError.NOT_INITIALIZED


def test_open_camera(pvcam, sim):
    camera = pvcam.open_camera("PMSim1")
    assert isinstance(camera, Camera)
    assert camera.name == "PMSim1"
    assert camera.handle in sim.sessions
    with pytest.raises(DeviceError) as info:
        pvcam.open_camera("PMSim1")
    assert info.value.code == EError.CAMERA_BUSY
    camera.close()
    assert not camera.is_open()
    assert not sim.sessions


def test_open_camera_by_index(pvcam):
    with pvcam[1] as camera:
        assert camera.name == "PMSim1"


def test_open_unknown_camera(pvcam):
    with pytest.raises(DeviceError) as info:
        pvcam.open_camera("Nope")
    assert info.value.code == EError.NO_CAMERA
    assert info.value.message == "Camera not found"


@pytest.mark.parametrize("name", ["PM\0Sim0", "PM\udcffSim0"])
def test_unrepresentable_camera_name(pvcam, sim, name):
    sim.log.clear()
    with pytest.raises(EncodingError) as info:
        pvcam.open_camera(name)
    assert info.value.code == -1
    assert sim.log == []


def test_camera_context_logs_close_error(pvcam, sim, caplog):
    with pvcam.open_camera("PMSim0") as camera:
        sim.fail("pl_cam_close", EError.INVALID_HANDLE)
    assert not camera.is_open()
    assert "Could not close camera" in caplog.text


def test_find_library_from_environment(monkeypatch):
    monkeypatch.setenv("PVCAM_LIBRARY", "/opt/pvcam/libpvcam.so.2")
    monkeypatch.setenv("PVCAM_SDK_PATH", "/opt/pvcam/sdk")
    assert find_library("/tmp/libpvcam.so") == "/tmp/libpvcam.so"
    assert find_library() == "/opt/pvcam/libpvcam.so.2"
    monkeypatch.delenv("PVCAM_LIBRARY")
    expected = os.path.join("/opt/pvcam/sdk", "library", "x86_64", "libpvcam.so")
    assert find_library() == expected


def test_load_missing_library(tmp_path):
    with pytest.raises(PVCAMError, match="could not load PVCAM library"):
        load_library(str(tmp_path / "libpvcam.so"))


def test_lazy_library_loading(tmp_path):
    pvcam = PVCAM(path=str(tmp_path / "libpvcam.so"))
    with pytest.raises(PVCAMError):
        pvcam.open()
    assert not pvcam.is_open()


def test_simulator_context():
    with PVCAM(Simulator()) as pvcam:
        with pvcam.open_camera("PMSim0") as camera:
            assert camera["gain_index"].value == 1
