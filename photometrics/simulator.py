# -*- coding: utf-8 -*-
#
# This file is part of the photometrics project
#
# Copyright (c) 2021 Tiago Coutinho
# Distributed under the GPLv3 license. See LICENSE for more info.

"""
Simulated PVCAM library.

Implements the ``pl_*`` calls used by :mod:`photometrics.pvcam` with the
same contract as libpvcam: every call returns PV_OK or PV_FAIL, results
are written through the pointers supplied by the caller and the error of
the last failed call is kept globally until queried.

    >>> from photometrics.pvcam import PVCAM
    >>> from photometrics.simulator import Simulator
    >>> with PVCAM(Simulator()) as pvcam:
    ...     camera = pvcam.open_camera("PMSim0")
    ...     camera["gain_index"]
    Integer(value=1)
"""

import copy
import enum
import ctypes
import logging
import functools
import collections

from .pvcam import (
    PV_OK,
    PV_FAIL,
    CAM_NAME_LEN,
    ERROR_MSG_LEN,
    MAX_PP_NAME_LEN,
    EAttr,
    EType,
    EParam,
    EAccess,
)


class EError(enum.IntEnum):
    NONE = 0
    NOT_INITIALIZED = 1
    ALREADY_INITIALIZED = 2
    NO_CAMERA = 3
    CAMERA_BUSY = 4
    INVALID_HANDLE = 5
    NOT_AVAILABLE = 6
    INVALID_ATTRIBUTE = 7
    NOT_READABLE = 8
    NOT_WRITABLE = 9
    INVALID_VALUE = 10
    INVALID_INDEX = 11
    NOT_ENUM = 12


MESSAGES = {
    EError.NONE: "No error",
    EError.NOT_INITIALIZED: "PVCAM library is not initialized",
    EError.ALREADY_INITIALIZED: "PVCAM library is already initialized",
    EError.NO_CAMERA: "Camera not found",
    EError.CAMERA_BUSY: "Camera is already open",
    EError.INVALID_HANDLE: "Invalid camera handle",
    EError.NOT_AVAILABLE: "Parameter is not available",
    EError.INVALID_ATTRIBUTE: "Parameter does not have this attribute",
    EError.NOT_READABLE: "Parameter is not readable",
    EError.NOT_WRITABLE: "Parameter is not writable",
    EError.INVALID_VALUE: "Value is out of range",
    EError.INVALID_INDEX: "Enumeration index is out of range",
    EError.NOT_ENUM: "Parameter is not an enumeration",
}

# how the simulated device stores each type
STORAGE = {
    EType.INT8: ctypes.c_int8,
    EType.UNS8: ctypes.c_uint8,
    EType.INT16: ctypes.c_int16,
    EType.UNS16: ctypes.c_uint16,
    EType.INT32: ctypes.c_int32,
    EType.UNS32: ctypes.c_uint32,
    EType.UNS64: ctypes.c_uint64,
    EType.FLT64: ctypes.c_double,
    EType.BOOLEAN: ctypes.c_uint16,
    EType.ENUM: ctypes.c_int32,
}

ATTR_STORAGE = {
    EAttr.AVAIL: ctypes.c_uint16,
    EAttr.TYPE: ctypes.c_uint16,
    EAttr.ACCESS: ctypes.c_uint16,
    EAttr.COUNT: ctypes.c_uint32,
}


class SimError(Exception):
    @property
    def code(self):
        return self.args[0]


class Param:
    def __init__(
        self,
        type,
        value,
        access=EAccess.READ_WRITE,
        options=None,
        minimum=None,
        maximum=None,
        default=None,
        increment=None,
    ):
        self.type = type
        self.value = value
        self.access = access
        self.options = options or []
        self.attributes = {
            EAttr.MIN: minimum,
            EAttr.MAX: maximum,
            EAttr.DEFAULT: value if default is None else default,
            EAttr.INCREMENT: increment,
        }

    def get(self, attr):
        if attr == EAttr.CURRENT:
            if self.access in {EAccess.WRITE_ONLY, EAccess.EXIST_CHECK_ONLY}:
                raise SimError(EError.NOT_READABLE)
            return self.value
        elif attr == EAttr.COUNT:
            if self.type == EType.ENUM:
                return len(self.options)
            elif self.type == EType.CHAR_PTR:
                return len(self.value) + 1
            return 1
        value = self.attributes.get(attr)
        if value is None:
            raise SimError(EError.INVALID_ATTRIBUTE)
        return value

    def option(self, index):
        if self.type != EType.ENUM:
            raise SimError(EError.NOT_ENUM)
        if not 0 <= index < len(self.options):
            raise SimError(EError.INVALID_INDEX)
        return self.options[index]


def default_params():
    return {
        EParam.HEAD_SER_NUM_ALPHA: Param(
            EType.CHAR_PTR, "A10B2030", access=EAccess.READ_ONLY
        ),
        EParam.EXPOSURE_MODE: Param(
            EType.ENUM,
            0,
            options=[(0, "Timed"), (2, "Bulb"), (3, "Trigger First"), (5, "Variable Timed")],
        ),
        EParam.EXPOSE_OUT_MODE: Param(
            EType.ENUM,
            0,
            options=[(0, "First Row"), (1, "All Rows"), (2, "Any Row")],
        ),
        EParam.GAIN_INDEX: Param(EType.INT16, 1, minimum=1, maximum=3, increment=1),
        EParam.READOUT_PORT: Param(
            EType.ENUM, 0, options=[(0, "Sensitivity"), (1, "Speed"), (2, "Dynamic Range")]
        ),
        EParam.PAR_SIZE: Param(EType.UNS16, 2048, access=EAccess.READ_ONLY),
        EParam.SER_SIZE: Param(EType.UNS16, 2048, access=EAccess.READ_ONLY),
        EParam.SPDTAB_INDEX: Param(EType.INT16, 0, minimum=0, maximum=1, increment=1),
    }


def read(ptr, ctype):
    return ctypes.cast(ptr, ctypes.POINTER(ctype)).contents.value


def write(ptr, ctype, value):
    ctypes.cast(ptr, ctypes.POINTER(ctype)).contents.value = value


def write_string(ptr, text, size):
    if size <= 0:
        return
    data = text if isinstance(text, bytes) else text.encode()
    data = data[: size - 1] + b"\0"
    ctypes.memmove(ptr, data, len(data))


def api(func):
    name = func.__name__

    @functools.wraps(func)
    def call(self, *args):
        self.log.append(name)
        code = self.failures.pop(name, None)
        if code is None:
            try:
                func(self, *args)
            except SimError as error:
                code = error.code
            else:
                return PV_OK
        logging.debug("simulator: %s%r failed with %d", name, args, code)
        self.error_code = code
        return PV_FAIL

    return call


class Simulator:
    """In process replacement for libpvcam."""

    def __init__(self, cameras=("PMSim0",), params=None):
        self.camera_names = list(cameras)
        self.params = default_params()
        if params:
            self.params.update(params)
        self.initialized = False
        self.sessions = {}
        self.error_code = EError.NONE
        self.failures = {}
        self.log = []

    @property
    def calls(self):
        return collections.Counter(self.log)

    def fail(self, name, code=EError.INVALID_VALUE):
        """Make the next call to `name` fail with `code`"""
        self.failures[name] = code

    def session(self, hcam):
        if not self.initialized:
            raise SimError(EError.NOT_INITIALIZED)
        try:
            return self.sessions[hcam][1]
        except KeyError:
            raise SimError(EError.INVALID_HANDLE) from None

    def param(self, hcam, param_id):
        try:
            return self.session(hcam)[param_id]
        except KeyError:
            raise SimError(EError.NOT_AVAILABLE) from None

    # error state

    def pl_error_code(self):
        self.log.append("pl_error_code")
        return int(self.error_code)

    def pl_error_message(self, code, msg):
        self.log.append("pl_error_message")
        if self.failures.pop("pl_error_message", None) is not None:
            return PV_FAIL
        try:
            message = MESSAGES[EError(code)]
        except ValueError:
            message = f"Unknown error {code}"
        write_string(msg, message, ERROR_MSG_LEN)
        return PV_OK

    # library and cameras

    @api
    def pl_pvcam_init(self):
        if self.initialized:
            raise SimError(EError.ALREADY_INITIALIZED)
        self.initialized = True

    @api
    def pl_pvcam_uninit(self):
        if not self.initialized:
            raise SimError(EError.NOT_INITIALIZED)
        self.initialized = False
        self.sessions.clear()

    @api
    def pl_cam_get_total(self, total):
        if not self.initialized:
            raise SimError(EError.NOT_INITIALIZED)
        write(total, ctypes.c_int16, len(self.camera_names))

    @api
    def pl_cam_get_name(self, cam_num, name):
        if not self.initialized:
            raise SimError(EError.NOT_INITIALIZED)
        if not 0 <= cam_num < len(self.camera_names):
            raise SimError(EError.NO_CAMERA)
        write_string(name, self.camera_names[cam_num], CAM_NAME_LEN)

    @api
    def pl_cam_open(self, camera_name, hcam, o_mode):
        if not self.initialized:
            raise SimError(EError.NOT_INITIALIZED)
        name = camera_name.decode()
        if name not in self.camera_names:
            raise SimError(EError.NO_CAMERA)
        if any(session[0] == name for session in self.sessions.values()):
            raise SimError(EError.CAMERA_BUSY)
        handle = max(self.sessions, default=-1) + 1
        self.sessions[handle] = name, copy.deepcopy(self.params)
        write(hcam, ctypes.c_int16, handle)

    @api
    def pl_cam_close(self, hcam):
        self.session(hcam)
        del self.sessions[hcam]

    # parameters

    @api
    def pl_get_param(self, hcam, param_id, param_attribute, param_value):
        params = self.session(hcam)
        if param_attribute == EAttr.AVAIL:
            write(param_value, ctypes.c_uint16, PV_OK if param_id in params else PV_FAIL)
            return
        param = self.param(hcam, param_id)
        if param_attribute == EAttr.TYPE:
            value = param.type
        elif param_attribute == EAttr.ACCESS:
            value = param.access
        else:
            value = param.get(param_attribute)
        if param_attribute in ATTR_STORAGE:
            write(param_value, ATTR_STORAGE[param_attribute], int(value))
        elif param.type == EType.CHAR_PTR:
            write_string(param_value, value, MAX_PP_NAME_LEN)
        else:
            write(param_value, STORAGE[param.type], value)

    @api
    def pl_set_param(self, hcam, param_id, param_value):
        param = self.param(hcam, param_id)
        if param.access not in {EAccess.READ_WRITE, EAccess.WRITE_ONLY}:
            raise SimError(EError.NOT_WRITABLE)
        if param.type == EType.ENUM:
            index = read(param_value, ctypes.c_uint32)
            param.value = param.option(index)[0]
            return
        if param.type not in STORAGE:
            raise SimError(EError.NOT_WRITABLE)
        value = read(param_value, STORAGE[param.type])
        minimum = param.attributes[EAttr.MIN]
        maximum = param.attributes[EAttr.MAX]
        if minimum is not None and value < minimum:
            raise SimError(EError.INVALID_VALUE)
        if maximum is not None and value > maximum:
            raise SimError(EError.INVALID_VALUE)
        param.value = value

    @api
    def pl_enum_str_length(self, hcam, param_id, index, length):
        _, name = self.param(hcam, param_id).option(index)
        data = name if isinstance(name, bytes) else name.encode()
        write(length, ctypes.c_uint32, len(data) + 1)

    @api
    def pl_get_enum_param(self, hcam, param_id, index, value, desc, length):
        option_value, name = self.param(hcam, param_id).option(index)
        write(value, ctypes.c_int32, option_value)
        write_string(desc, name, length)
