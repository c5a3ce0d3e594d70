# -*- coding: utf-8 -*-
#
# This file is part of the photometrics project
#
# Copyright (c) 2021 Tiago Coutinho
# Distributed under the GPLv3 license. See LICENSE for more info.

"""Python library to access Photometrics cameras through PVCAM"""

__version__ = "0.1.0"
