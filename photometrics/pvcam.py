# -*- coding: utf-8 -*-
#
# This file is part of the photometrics project
#
# Copyright (c) 2021 Tiago Coutinho
# Distributed under the GPLv3 license. See LICENSE for more info.

"""Typed access to the Photometrics PVCAM parameter store.

PVCAM exposes camera settings as untyped parameters addressed by integer
IDs. Before a value can be read or written its availability and type have
to be queried through separate calls. This module does that discovery on
every access and converts the raw buffers into python values.

None of the objects here lock. PVCAM keeps its error state per process so
all calls against the same camera handle must be serialized by the caller.
"""

import os
import sys
import enum
import ctypes
import ctypes.util
import logging
import functools
import collections

PV_FAIL = 0
PV_OK = 1

# buffer capacities defined by pvcam.h
ERROR_MSG_LEN = 255
CAM_NAME_LEN = 32
MAX_PP_NAME_LEN = 32


class EParam(enum.IntEnum):
    HEAD_SER_NUM_ALPHA = 218235413  # CHAR_PTR
    EXPOSURE_MODE = 151126551  # ENUM
    EXPOSE_OUT_MODE = 151192128  # ENUM
    GAIN_INDEX = 16908800  # INT16
    READOUT_PORT = 151126263  # ENUM
    PAR_SIZE = 100794425  # UNS16
    SER_SIZE = 100794426  # UNS16
    SPDTAB_INDEX = 16908801  # INT16

    @classmethod
    def from_name(cls, name):
        return cls[name.upper().replace(" ", "_")]


class EAttr(enum.IntEnum):
    CURRENT = 0
    COUNT = 1
    TYPE = 2
    MIN = 3
    MAX = 4
    DEFAULT = 5
    INCREMENT = 6
    ACCESS = 7
    AVAIL = 8


class EType(enum.IntEnum):
    INT16 = 1
    INT32 = 2
    FLT64 = 4
    UNS8 = 5
    UNS16 = 6
    UNS32 = 7
    UNS64 = 8
    ENUM = 9
    BOOLEAN = 11
    INT8 = 12
    CHAR_PTR = 13
    VOID_PTR = 14
    VOID_PTR_PTR = 15


class EAccess(enum.IntEnum):
    ERROR = 0
    READ_ONLY = 1
    READ_WRITE = 2
    EXIST_CHECK_ONLY = 3
    WRITE_ONLY = 4


class EOpenMode(enum.IntEnum):
    EXCLUSIVE = 0


class ParamType(enum.Enum):
    ENUM = "enum"
    INT16 = "int16"
    INT32 = "int32"
    STRING = "string"


# unsigned 16 bit parameters are reported as 32 bit: widened, never truncated
TYPE_MAP = {
    EType.INT16: ParamType.INT16,
    EType.UNS16: ParamType.INT32,
    EType.INT32: ParamType.INT32,
    EType.CHAR_PTR: ParamType.STRING,
    EType.ENUM: ParamType.ENUM,
}

# device storage of integer parameters, used for both reads and writes
SCALAR_CTYPES = {
    EType.INT16: ctypes.c_int16,
    EType.UNS16: ctypes.c_uint16,
    EType.INT32: ctypes.c_int32,
}

# storage of the parameter facets that do not depend on the parameter type
ATTR_CTYPES = {
    EAttr.AVAIL: ctypes.c_uint16,
    EAttr.TYPE: ctypes.c_uint16,
    EAttr.ACCESS: ctypes.c_uint16,
    EAttr.COUNT: ctypes.c_uint32,
}

ENUM_VALUE_CTYPE = ctypes.c_int32
ENUM_INDEX_CTYPE = ctypes.c_uint32

# pl_error_code is the only call which does not return a rs_bool
RESTYPES = {
    "pl_error_code": ctypes.c_int16,
}


EnumOption = collections.namedtuple("EnumOption", "index value name")
Integer = collections.namedtuple("Integer", "value")
Text = collections.namedtuple("Text", "value")


class Enumeration(collections.namedtuple("Enumeration", "index options")):

    __slots__ = ()

    @property
    def option(self):
        return self.options[self.index]

    @property
    def name(self):
        return self.option.name

    @property
    def value(self):
        return self.option.value


class PVCAMError(Exception):
    def __init__(self, message, code=-1):
        super().__init__(message, code)

    @classmethod
    def name(cls):
        return cls.__name__

    @property
    def message(self):
        return self.args[0]

    @property
    def code(self):
        return self.args[1]

    def __repr__(self):
        return f"{self.name()}({self.message!r}, {self.code})"

    def __str__(self):
        return f"{self.message} (code: {self.code})"


class DeviceError(PVCAMError):
    def __init__(self, message, code, location="?"):
        super().__init__(message, code)
        self.location = location

    def __str__(self):
        return f"{self.location}: {self.message} (code: {self.code})"


class ParameterUnknownError(PVCAMError):
    pass


class ParameterTypeMismatchError(PVCAMError):
    pass


class ValueOutOfRangeError(PVCAMError):
    def __init__(self, message, value):
        super().__init__(message)
        self.value = value


class UnmappedTypeCodeError(PVCAMError):
    def __init__(self, type_code):
        super().__init__(f"{type_code:#X} unknown parameter type")
        self.type_code = type_code


class EncodingError(PVCAMError):
    pass


class UnresolvedEnumValueError(PVCAMError):
    def __init__(self, value, options):
        super().__init__(f"could not find {value} in enum with values {options!r}")
        self.value = value
        self.options = options


def param_name(param_id):
    try:
        return EParam(param_id).name.lower()
    except ValueError:
        return f"{param_id:#x}"


def to_param_id(param):
    if isinstance(param, str):
        try:
            return EParam.from_name(param)
        except KeyError:
            raise ParameterUnknownError(f"parameter {param!r} is unknown") from None
    return param


# Status translation


def check_call(status):
    return status == PV_OK


class ScopedBuffer:
    """
    Zero filled byte buffer lent to the device for the duration of a
    `with` block. The buffer is dropped when the block exits, whatever
    the outcome of the device call.
    """

    def __init__(self, size):
        self.size = size
        self.raw = None
        self.released = False

    def __enter__(self):
        self.raw = ctypes.create_string_buffer(self.size)
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.raw = None
        self.released = True

    @property
    def ref(self):
        return self.raw

    def decode(self):
        data = self.raw.value
        try:
            return data.decode()
        except UnicodeDecodeError as error:
            raise EncodingError(f"{data!r} caused error: {error}") from error


def last_error(lib, location="?"):
    """
    Build a DeviceError from the PVCAM call-global error state.

    Must be called right after the failing call with no other call on the
    same session in between.
    """
    code = lib.pl_error_code()
    with ScopedBuffer(ERROR_MSG_LEN) as buff:
        if check_call(lib.pl_error_message(code, buff.ref)):
            try:
                message = buff.decode()
            except EncodingError as error:
                message = f"Error converting pl_error_message to str: {error.message}"
        else:
            message = "Unknown Error"
    return DeviceError(message, code, location)


class Library:
    """
    Status checking proxy over the raw PVCAM function table.

    Every ``pl_*`` function obtained from it raises DeviceError when the
    call does not return PV_OK. The error is resolved before control
    returns to the caller.
    """

    def __init__(self, lib):
        self._lib = lib

    def __getattr__(self, name):
        member = getattr(self._lib, name)
        if not callable(member):
            return member

        @functools.wraps(member)
        def func(*args):
            if not check_call(member(*args)):
                error = last_error(self._lib, name)
                logging.debug("%s%r failed: %s", name, args, error)
                raise error

        setattr(self, name, func)
        return func

    def error(self, location="?"):
        return last_error(self._lib, location)


def find_library(path=None):
    if path:
        return path
    path = os.environ.get("PVCAM_LIBRARY")
    if path:
        return path
    sdk = os.environ.get("PVCAM_SDK_PATH")
    if sdk:
        return os.path.join(sdk, "library", "x86_64", "libpvcam.so")
    if sys.platform == "win32":
        return "Pvcam64" if sys.maxsize > 2 ** 32 else "Pvcam32"
    return ctypes.util.find_library("pvcam")


def load_library(path=None):
    path = find_library(path)
    if path is None:
        raise PVCAMError("could not find the PVCAM library")
    loader = ctypes.WinDLL if sys.platform == "win32" else ctypes.CDLL
    try:
        lib = loader(path)
    except OSError as error:
        raise PVCAMError(f"could not load PVCAM library {path!r}: {error}") from error
    for name in ("pl_pvcam_init", "pl_pvcam_uninit", "pl_cam_get_total",
                 "pl_cam_get_name", "pl_cam_open", "pl_cam_close",
                 "pl_get_param", "pl_set_param", "pl_enum_str_length",
                 "pl_get_enum_param", "pl_error_code", "pl_error_message"):
        getattr(lib, name).restype = RESTYPES.get(name, ctypes.c_uint16)
    logging.debug("loaded PVCAM library from %r", path)
    return Library(lib)


# Buffer marshalling


def fits(value, ctype):
    bits = 8 * ctypes.sizeof(ctype)
    if ctype(-1).value < 0:
        return -(1 << (bits - 1)) <= value < (1 << (bits - 1))
    return 0 <= value < (1 << bits)


def get_string(lib, hcam, param_id, attr=EAttr.CURRENT, size=MAX_PP_NAME_LEN):
    with ScopedBuffer(size) as buff:
        lib.pl_get_param(hcam, param_id, attr, buff.ref)
        return buff.decode()


def get_scalar(lib, hcam, param_id, attr, ctype):
    value = ctype(0)
    lib.pl_get_param(hcam, param_id, attr, ctypes.byref(value))
    return value.value


def set_scalar(lib, hcam, param_id, value, ctype):
    if not fits(value, ctype):
        raise ValueOutOfRangeError(
            f"{value} cannot fit in {ctype.__name__}, which is what "
            f"{param_name(param_id)} is",
            value,
        )
    value = ctype(value)
    lib.pl_set_param(hcam, param_id, ctypes.byref(value))


# Parameter type resolution


def is_available(lib, hcam, param_id):
    # a successful query can still answer "not available"
    avail = get_scalar(lib, hcam, param_id, EAttr.AVAIL, ATTR_CTYPES[EAttr.AVAIL])
    return avail == PV_OK


def check_available(lib, hcam, param_id):
    if not is_available(lib, hcam, param_id):
        raise ParameterUnknownError(f"parameter {param_name(param_id)} is unknown")


def get_type_code(lib, hcam, param_id):
    kind = get_scalar(lib, hcam, param_id, EAttr.TYPE, ATTR_CTYPES[EAttr.TYPE])
    if kind not in TYPE_MAP:
        raise UnmappedTypeCodeError(kind)
    return kind


def get_type(lib, hcam, param_id):
    return TYPE_MAP[get_type_code(lib, hcam, param_id)]


def get_access(lib, hcam, param_id):
    access = get_scalar(lib, hcam, param_id, EAttr.ACCESS, ATTR_CTYPES[EAttr.ACCESS])
    try:
        return EAccess(access)
    except ValueError:
        raise PVCAMError(f"got {access} from access check, not expected") from None


# Enumerations


def get_enum_str_length(lib, hcam, param_id, index):
    length = ctypes.c_uint32(0)
    lib.pl_enum_str_length(hcam, param_id, index, ctypes.byref(length))
    return length.value


def get_enum_option(lib, hcam, param_id, index):
    # enum names have no fixed maximum: ask for the length first
    length = get_enum_str_length(lib, hcam, param_id, index)
    value = ENUM_VALUE_CTYPE(0)
    with ScopedBuffer(length) as buff:
        lib.pl_get_enum_param(
            hcam, param_id, index, ctypes.byref(value), buff.ref, length
        )
        return EnumOption(index, value.value, buff.decode())


def get_enum_options(lib, hcam, param_id):
    count = get_scalar(lib, hcam, param_id, EAttr.COUNT, ATTR_CTYPES[EAttr.COUNT])
    return [get_enum_option(lib, hcam, param_id, index) for index in range(count)]


def get_enum_index(lib, hcam, param_id, options, attr=EAttr.CURRENT):
    value = get_scalar(lib, hcam, param_id, attr, ENUM_VALUE_CTYPE)
    for option in options:
        if option.value == value:
            return option.index
    raise UnresolvedEnumValueError(value, options)


# Typed access


def get_param(lib, hcam, param, attr=EAttr.CURRENT):
    param_id = to_param_id(param)
    check_available(lib, hcam, param_id)
    # TODO: refuse reads of WRITE_ONLY and EXIST_CHECK_ONLY parameters (see get_access)
    kind = get_type_code(lib, hcam, param_id)
    if attr in ATTR_CTYPES:
        return Integer(get_scalar(lib, hcam, param_id, attr, ATTR_CTYPES[attr]))
    ptype = TYPE_MAP[kind]
    if ptype is ParamType.ENUM:
        options = get_enum_options(lib, hcam, param_id)
        return Enumeration(get_enum_index(lib, hcam, param_id, options, attr), options)
    elif ptype is ParamType.STRING:
        return Text(get_string(lib, hcam, param_id, attr))
    return Integer(get_scalar(lib, hcam, param_id, attr, SCALAR_CTYPES[kind]))


def set_param(lib, hcam, param, value):
    param_id = to_param_id(param)
    check_available(lib, hcam, param_id)
    kind = get_type_code(lib, hcam, param_id)
    ptype = TYPE_MAP[kind]
    name = param_name(param_id)
    if isinstance(value, Integer):
        if kind not in SCALAR_CTYPES:
            raise ParameterTypeMismatchError(
                f"cannot write integer to {name} of type {ptype.value}"
            )
        set_scalar(lib, hcam, param_id, value.value, SCALAR_CTYPES[kind])
    elif isinstance(value, Enumeration):
        if ptype is not ParamType.ENUM:
            raise ParameterTypeMismatchError(
                f"cannot write enumeration to {name} of type {ptype.value}"
            )
        set_scalar(lib, hcam, param_id, value.index, ENUM_INDEX_CTYPE)
    else:
        raise ParameterTypeMismatchError(
            f"cannot write {type(value).__name__} to {name} of type {ptype.value}"
        )
    logging.debug("%s <- %r", name, value)


# Cameras and library lifecycle


def init(lib):
    lib.pl_pvcam_init()


def uninit(lib):
    lib.pl_pvcam_uninit()


def cam_get_total(lib):
    total = ctypes.c_int16(0)
    lib.pl_cam_get_total(ctypes.byref(total))
    return total.value


def cam_get_name(lib, cam_num):
    with ScopedBuffer(CAM_NAME_LEN) as buff:
        lib.pl_cam_get_name(cam_num, buff.ref)
        return buff.decode()


def cam_open(lib, name, mode=EOpenMode.EXCLUSIVE):
    try:
        c_name = name.encode()
    except UnicodeEncodeError as error:
        raise EncodingError(f"cannot represent camera name {name!r}") from error
    if b"\0" in c_name:
        raise EncodingError(f"cannot represent camera name {name!r}")
    hcam = ctypes.c_int16(-1)
    lib.pl_cam_open(c_name, ctypes.byref(hcam), mode)
    return hcam.value


def cam_close(lib, hcam):
    lib.pl_cam_close(hcam)


class Camera:
    """
    An open PVCAM camera session.

    Parameters can be accessed by EParam, raw ID or name::

        camera["gain_index"] = 2
        camera[EParam.READOUT_PORT].name

    Calls on one camera must not run concurrently.
    """

    def __init__(self, lib, name, handle):
        self._lib = lib
        self.name = name
        self.handle = handle

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        try:
            self.close()
        except PVCAMError as error:
            logging.error("Could not close camera %r. Reason %r", self.name, error)

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, handle={self.handle})"

    def __getitem__(self, param):
        return self.get(param)

    def __setitem__(self, param, value):
        if isinstance(value, int) and not isinstance(value, bool):
            value = Integer(value)
        self.set(param, value)

    def __contains__(self, param):
        try:
            param_id = to_param_id(param)
        except ParameterUnknownError:
            return False
        return is_available(self._lib, self.handle, param_id)

    def __iter__(self):
        return (param for param in EParam if param in self)

    def is_open(self):
        return self.handle is not None

    def close(self):
        if self.handle is not None:
            handle, self.handle = self.handle, None
            cam_close(self._lib, handle)

    def get(self, param, attr=EAttr.CURRENT):
        return get_param(self._lib, self.handle, param, attr)

    def set(self, param, value):
        set_param(self._lib, self.handle, param, value)

    def is_available(self, param):
        return is_available(self._lib, self.handle, to_param_id(param))

    def type_of(self, param):
        param_id = to_param_id(param)
        check_available(self._lib, self.handle, param_id)
        return get_type(self._lib, self.handle, param_id)

    def access(self, param):
        param_id = to_param_id(param)
        check_available(self._lib, self.handle, param_id)
        return get_access(self._lib, self.handle, param_id)

    def options(self, param):
        param_id = to_param_id(param)
        check_available(self._lib, self.handle, param_id)
        if get_type(self._lib, self.handle, param_id) is not ParamType.ENUM:
            raise ParameterTypeMismatchError(f"{param_name(param_id)} is not an enumeration")
        return get_enum_options(self._lib, self.handle, param_id)


class PVCAM:
    """The PVCAM subsystem. Loads the library on first open."""

    def __init__(self, lib=None, path=None):
        self._lib = None if lib is None else Library(lib)
        self.path = path
        self._initialized = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, tb):
        try:
            self.close()
        except PVCAMError as error:
            logging.error("Could not uninitialize PVCAM. Reason %r", error)

    def __len__(self):
        return cam_get_total(self.lib)

    def __iter__(self):
        return iter(self.cameras)

    def __getitem__(self, camera):
        if isinstance(camera, int):
            camera = cam_get_name(self.lib, camera)
        return self.open_camera(camera)

    @property
    def lib(self):
        if self._lib is None:
            self._lib = load_library(self.path)
        return self._lib

    def is_open(self):
        return self._initialized

    def open(self):
        if self.is_open():
            return
        init(self.lib)
        self._initialized = True
        logging.info("PVCAM initialized")

    def close(self):
        if self.is_open():
            self._initialized = False
            uninit(self.lib)
            logging.info("PVCAM uninitialized")

    @property
    def cameras(self):
        return [cam_get_name(self.lib, i) for i in range(cam_get_total(self.lib))]

    def open_camera(self, name):
        handle = cam_open(self.lib, name)
        logging.info("opened camera %r (handle=%d)", name, handle)
        return Camera(self.lib, name, handle)


pvcam = PVCAM()
