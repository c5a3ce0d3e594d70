import pytest
from click.testing import CliRunner

from photometrics.cli import cli


@pytest.fixture
def run():
    runner = CliRunner()

    def run(*args):
        return runner.invoke(cli, ["--simulator", *args])

    return run


def test_scan(run):
    result = run("scan")
    assert result.exit_code == 0, result.output
    assert "PMSim0" in result.output


def test_dump(run):
    result = run("dump", "PMSim0")
    assert result.exit_code == 0, result.output
    assert "gain_index" in result.output
    assert "Sensitivity" in result.output
    assert "read_only" in result.output


def test_get(run):
    result = run("get", "PMSim0", "readout_port")
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "Sensitivity"


def test_get_attribute(run):
    result = run("get", "PMSim0", "gain_index", "--attr", "max")
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "3"


def test_set_enumeration(run):
    result = run("set", "PMSim0", "readout_port", "Speed")
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "Speed"


def test_set_enumeration_invalid_option(run):
    result = run("set", "PMSim0", "readout_port", "Turbo")
    assert result.exit_code != 0
    assert "Sensitivity" in result.output


def test_set_integer(run):
    result = run("set", "PMSim0", "gain_index", "2")
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "2"


def test_set_out_of_range(run):
    result = run("set", "PMSim0", "gain_index", "40000")
    assert result.exit_code == 1
    assert "40000 cannot fit" in result.output


def test_unknown_parameter(run):
    result = run("get", "PMSim0", "no_such_param")
    assert result.exit_code == 1
    assert "is unknown" in result.output


def test_unknown_camera(run):
    result = run("get", "Nope", "gain_index")
    assert result.exit_code == 1
    assert "Camera not found" in result.output


def test_dump_reports_failing_facet_in_its_cell(run, monkeypatch):
    from photometrics import simulator
    from photometrics.pvcam import EParam, EType

    class BadAccessSimulator(simulator.Simulator):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            self.params[EParam.SER_SIZE] = simulator.Param(EType.UNS16, 2048, access=42)

    monkeypatch.setattr(simulator, "Simulator", BadAccessSimulator)
    result = run("dump", "PMSim0")
    assert result.exit_code == 0, result.output
    assert "ser_size" in result.output
    assert "got 42" in result.output
    assert "gain_index" in result.output
