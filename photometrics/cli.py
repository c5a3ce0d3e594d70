# -*- coding: utf-8 -*-
#
# This file is part of the photometrics project
#
# Copyright (c) 2021 Tiago Coutinho
# Distributed under the GPLv3 license. See LICENSE for more info.

import shutil
import logging
import functools

import click
from beautifultable import BeautifulTable

from .pvcam import (
    PVCAM,
    EAttr,
    Integer,
    ParamType,
    PVCAMError,
    Enumeration,
)


TABLE_STYLES = ["default", "compact", "markdown", "box", "box_rounded", "grid", "none"]


def table_style(func):
    return click.option(
        "--table-style",
        type=click.Choice(TABLE_STYLES, case_sensitive=False),
        default="compact",
        show_default=True,
        help="table style",
    )(func)


def make_table(header, style):
    width = shutil.get_terminal_size().columns
    table = BeautifulTable(maxwidth=width)
    table.set_style(getattr(BeautifulTable, "STYLE_" + style.upper()))
    table.columns.header = header
    return table


def rep(value):
    if isinstance(value, Enumeration):
        return value.name
    return value.value


def pvcam_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PVCAMError as error:
            raise click.ClickException(str(error)) from error

    return wrapper


@click.group()
@click.option("--simulator", is_flag=True, help="use the simulated PVCAM library")
@click.option("--library", envvar="PVCAM_LIBRARY", help="path to libpvcam")
@click.option(
    "--log-level",
    help="log level",
    type=click.Choice(["DEBUG", "INFO", "WARN", "ERROR"], case_sensitive=False),
    default="WARN",
)
@click.pass_context
@pvcam_errors
def cli(ctx, simulator, library, log_level):
    """Photometrics PVCAM camera parameters"""
    log_fmt = "%(levelname)s %(asctime)-15s %(name)s: %(message)s"
    logging.basicConfig(level=log_level.upper(), format=log_fmt)
    lib = None
    if simulator:
        from .simulator import Simulator

        lib = Simulator()
    ctx.obj = ctx.with_resource(PVCAM(lib, path=library))


@cli.command("scan")
@table_style
@click.pass_obj
@pvcam_errors
def scan(pvcam, table_style):
    """show accessible cameras"""
    table = make_table(["ID", "Name"], table_style)
    for i, name in enumerate(pvcam.cameras):
        table.rows.append([i, name])
    click.echo(table)


@cli.command("dump")
@click.argument("camera")
@table_style
@click.pass_obj
@pvcam_errors
def dump(pvcam, camera, table_style):
    """dump camera parameters"""
    table = make_table(["Name", "Value", "Type", "Access"], table_style)
    with pvcam.open_camera(camera) as cam:
        for param in cam:
            row = [param.name.lower()]
            for read in (
                lambda: rep(cam[param]),
                lambda: cam.type_of(param).value,
                lambda: cam.access(param).name.lower(),
            ):
                try:
                    row.append(read())
                except PVCAMError as error:
                    row.append(f"<{error.message}>")
            table.rows.append(row)
    click.echo(table)


@cli.command("get")
@click.argument("camera")
@click.argument("param")
@click.option(
    "--attr",
    type=click.Choice([a.name.lower() for a in EAttr], case_sensitive=False),
    default="current",
    show_default=True,
)
@click.pass_obj
@pvcam_errors
def get(pvcam, camera, param, attr):
    """read a camera parameter"""
    with pvcam.open_camera(camera) as cam:
        click.echo(rep(cam.get(param, EAttr[attr.upper()])))


@cli.command("set")
@click.argument("camera")
@click.argument("param")
@click.argument("value")
@click.pass_obj
@pvcam_errors
def set_(pvcam, camera, param, value):
    """write a camera parameter (enumerations accept option name or value)"""
    with pvcam.open_camera(camera) as cam:
        if cam.type_of(param) is ParamType.ENUM:
            options = cam.options(param)
            for option in options:
                if value in {option.name, str(option.value)}:
                    break
            else:
                choices = ", ".join(option.name for option in options)
                raise click.BadParameter(f"{value!r} not in {choices}", param_hint="value")
            new_value = Enumeration(option.index, options)
        else:
            try:
                new_value = Integer(int(value, 0))
            except ValueError:
                raise click.BadParameter(f"{value!r} is not an integer", param_hint="value")
        cam.set(param, new_value)
        click.echo(rep(cam.get(param)))


def main():
    cli(auto_envvar_prefix="PVCAM")


if __name__ == "__main__":
    main()
