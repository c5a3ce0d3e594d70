import pytest

from photometrics.pvcam import (
    EType,
    EParam,
    EAccess,
    ParamType,
    PVCAMError,
    UnmappedTypeCodeError,
    get_access,
    get_type,
    is_available,
)
from photometrics.simulator import Param

PARAM_ID = 0x01020304


def declare(sim, hcam, type_code, access=EAccess.READ_WRITE):
    sim.sessions[hcam][1][PARAM_ID] = Param(type_code, 0, access=access)


@pytest.mark.parametrize(
    "type_code, expected",
    [
        (EType.INT16, ParamType.INT16),
        (EType.UNS16, ParamType.INT32),
        (EType.INT32, ParamType.INT32),
        (EType.CHAR_PTR, ParamType.STRING),
        (EType.ENUM, ParamType.ENUM),
    ],
)
def test_known_type_codes(lib, hcam, sim, type_code, expected):
    declare(sim, hcam, type_code)
    assert get_type(lib, hcam, PARAM_ID) is expected


@pytest.mark.parametrize("type_code", [EType.FLT64, EType.UNS32, EType.BOOLEAN, 0, 99])
def test_unmapped_type_codes(lib, hcam, sim, type_code):
    declare(sim, hcam, type_code)
    with pytest.raises(UnmappedTypeCodeError) as info:
        get_type(lib, hcam, PARAM_ID)
    assert info.value.type_code == type_code
    assert info.value.code == -1
    assert f"{int(type_code):#X}" in info.value.message


def test_is_available(lib, hcam):
    assert is_available(lib, hcam, EParam.GAIN_INDEX) is True
    assert is_available(lib, hcam, PARAM_ID) is False


def test_type_is_queried_every_time(lib, hcam, sim):
    declare(sim, hcam, EType.INT16)
    assert get_type(lib, hcam, PARAM_ID) is ParamType.INT16
    declare(sim, hcam, EType.ENUM)
    assert get_type(lib, hcam, PARAM_ID) is ParamType.ENUM
    assert sim.calls["pl_get_param"] == 2


@pytest.mark.parametrize("access", list(EAccess))
def test_get_access(lib, hcam, sim, access):
    declare(sim, hcam, EType.INT16, access=access)
    assert get_access(lib, hcam, PARAM_ID) is access


def test_get_access_unexpected(lib, hcam, sim):
    declare(sim, hcam, EType.INT16, access=42)
    with pytest.raises(PVCAMError, match="got 42 from access check"):
        get_access(lib, hcam, PARAM_ID)
