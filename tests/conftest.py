import pytest

from jshell.executor import StageRunner
from jshell.parser import parse_input_and_exec


@pytest.fixture(params=[False, True], ids=["concurrent", "wait-each-stage"])
def wait_each_stage(request):
    return request.param


@pytest.fixture
def run_line(wait_each_stage):
    """Run one line; returns (status, runner)."""

    def _run(line, **kwargs):
        runner = StageRunner(wait_each_stage)
        status = parse_input_and_exec(line, runner=runner, **kwargs)
        return status, runner

    return _run
