import signal

import psutil

from jshell.config import EXEC_FAILURE, EXEC_NOT_FOUND, EXEC_SUCCESS
from jshell.executor import StageRunner
from jshell.parser import parse_input_and_exec


def test_plain_command(run_line, capfd):
    status, runner = run_line("echo hello   world")
    assert status == EXEC_SUCCESS
    assert runner.statuses == [0]
    assert capfd.readouterr().out == "hello world\n"


def test_blank_line_spawns_nothing(run_line):
    status, runner = run_line("  \t ")
    assert status == EXEC_SUCCESS
    assert runner.statuses == []


def test_input_redirection(run_line, capfd, tmp_path):
    source = tmp_path / "in.txt"
    source.write_text("banana\napple\n")
    run_line(f"sort < {source}")
    assert capfd.readouterr().out == "apple\nbanana\n"


def test_output_is_overwritten(run_line, tmp_path):
    target = tmp_path / "out.txt"
    run_line(f"echo first run > {target}")
    run_line(f"echo second > {target}")
    assert target.read_text() == "second\n"


def test_output_is_appended(run_line, tmp_path):
    target = tmp_path / "out.txt"
    run_line(f"echo one >> {target}")
    run_line(f"echo two >> {target}")
    assert target.read_text() == "one\ntwo\n"


def test_last_output_redirection_wins(run_line, tmp_path):
    first = tmp_path / "a.txt"
    second = tmp_path / "b.txt"
    first.write_text("old\n")
    run_line(f"echo hi > {first} > {second}")
    assert first.read_text() == ""
    assert second.read_text() == "hi\n"


def test_input_and_output_redirection(run_line, tmp_path):
    source = tmp_path / "in.txt"
    source.write_text("loud\n")
    target = tmp_path / "out.txt"
    status, runner = run_line(f"tr a-z A-Z < {source} > {target}")
    assert status == EXEC_SUCCESS
    assert runner.statuses == [0]
    assert target.read_text() == "LOUD\n"


def test_three_stage_pipeline(run_line, capfd):
    status, runner = run_line("printf c\\nb\\na\\n | sort | head -n 2")
    assert status == EXEC_SUCCESS
    assert runner.statuses == [0, 0, 0]
    assert capfd.readouterr().out == "a\nb\n"


def test_pipeline_from_input_file(run_line, capfd, tmp_path):
    source = tmp_path / "in.txt"
    source.write_text("x\ny\nz\n")
    run_line(f"cat < {source} | wc -l")
    assert capfd.readouterr().out.strip() == "3"


def test_pipeline_into_output_file(run_line, capfd, tmp_path):
    target = tmp_path / "out.txt"
    run_line(f"echo piped | tr a-z A-Z | cat > {target}")
    assert target.read_text() == "PIPED\n"
    assert capfd.readouterr().out == ""


def test_pipeline_leaves_no_descriptors_open(run_line):
    before = psutil.Process().num_fds()
    run_line("printf a\\nb\\n | sort -r | cat")
    assert psutil.Process().num_fds() == before


def test_parse_error_spawns_nothing(run_line, capfd):
    for line in ("| cat", "echo hi >", "cat < ><"):
        status, runner = run_line(line)
        assert status == EXEC_FAILURE
        assert runner.statuses == []
    err = capfd.readouterr().err
    assert "jshell: Missing program to pipe from." in err
    assert "jshell: No file for output redirection." in err
    assert "jshell: No file for input redirection." in err


def test_too_many_args(run_line, capfd):
    status, runner = run_line("echo 1 2 3 4", max_args=4)
    assert status == EXEC_FAILURE
    assert runner.statuses == []
    assert "jshell: Too many args." in capfd.readouterr().err


def test_stages_before_an_error_still_run(run_line, capfd):
    before = psutil.Process().num_fds()
    status, runner = run_line("echo hi | cat |")
    assert status == EXEC_FAILURE
    assert len(runner.statuses) == 2
    assert runner.running == []
    assert psutil.Process().num_fds() == before
    assert "jshell: Missing program to pipe to." in capfd.readouterr().err


def test_child_failure_is_not_a_builder_failure(run_line, capfd):
    status, runner = run_line("jshell-no-such-program --flag")
    assert status == EXEC_SUCCESS
    assert runner.statuses == [EXEC_NOT_FOUND]
    assert "jshell-no-such-program execvp()" in capfd.readouterr().err


def test_failed_open_is_a_builder_failure(run_line, capfd, tmp_path):
    status, runner = run_line(f"echo hi > {tmp_path}/missing/out.txt")
    assert status == EXEC_FAILURE
    assert runner.statuses == []
    assert "open(): No such file or directory" in capfd.readouterr().err


def test_concurrent_pipeline_handles_output_larger_than_pipe(capfd):
    runner = StageRunner(wait_each_stage=False)
    status = parse_input_and_exec("seq 1 200000 | wc -l", runner=runner)
    assert status == EXEC_SUCCESS
    assert capfd.readouterr().out.strip() == "200000"


def test_default_runner(capfd):
    assert parse_input_and_exec("echo default") == EXEC_SUCCESS
    assert capfd.readouterr().out == "default\n"


def test_writer_is_killed_by_sigpipe_when_reader_exits(capfd):
    runner = StageRunner(wait_each_stage=False)
    status = parse_input_and_exec("yes | head -n 1", runner=runner)
    assert status == EXEC_SUCCESS
    assert runner.statuses == [-signal.SIGPIPE, 0]
    captured = capfd.readouterr()
    assert captured.out == "y\n"
    assert captured.err == ""
