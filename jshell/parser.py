"""
Line scanner and pipeline builder. Operators must be whole tokens:

    cmd [< in] [> out | >> out]...
    cmd [< in] | cmd | ... | cmd [> out | >> out]...
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, replace
from enum import Enum

from jshell.config import (
    COMMAND_SEPARATOR,
    EXEC_FAILURE,
    EXEC_SUCCESS,
    MAX_ARGS,
    MAX_INPUT,
    PROGRAM_NAME,
)
from jshell.executor import StageRunner
from jshell.process import RedirectTarget, SystemCallError, report


class ParseError(ValueError):
    """Malformed line. The message is shown to the user as-is."""


class RedirectMode(Enum):
    NONE = "none"
    INPUT = "<"
    OUTPUT_TRUNCATE = ">"
    OUTPUT_APPEND = ">>"
    PIPING = "|"

    @property
    def is_output(self):
        return self in (RedirectMode.OUTPUT_TRUNCATE, RedirectMode.OUTPUT_APPEND)


OPERATORS = {mode.value: mode for mode in RedirectMode if mode is not RedirectMode.NONE}


@dataclass(frozen=True)
class ScanState:
    """
    Where the scan is inside a line.

    mode: what the tokens now being collected in argv belong to.
    pending: a command set aside by < or > while its file name is collected.
    input_file: recorded by "cmd < in >", applied at end of line.
    output_before_pipe: pending is the last stage of a pipeline whose
        output is redirected.
    """

    mode: RedirectMode = RedirectMode.NONE
    argv: tuple = ()
    pending: tuple | None = None
    input_file: str | None = None
    output_before_pipe: bool = False


# ---------- Actions ----------
@dataclass(frozen=True)
class RunCommand:
    argv: tuple
    redirect: RedirectTarget | None = None


@dataclass(frozen=True)
class RunRedirected:
    argv: tuple
    input_path: str
    output: RedirectTarget


@dataclass(frozen=True)
class TouchOutput:
    target: RedirectTarget


@dataclass(frozen=True)
class LaunchFirst:
    argv: tuple
    input_path: str | None = None


@dataclass(frozen=True)
class LaunchInterior:
    argv: tuple


@dataclass(frozen=True)
class LaunchFinal:
    argv: tuple
    output: RedirectTarget | None = None


# ---------- Scanning ----------
def tokenize(line, delimiters=COMMAND_SEPARATOR):
    if len(line) > MAX_INPUT:
        raise ParseError("Input line too long.")
    return [token for token in re.split(f"[{re.escape(delimiters)}]+", line) if token]


def _file_name(argv, missing):
    if not argv:
        raise ParseError(missing)
    if len(argv) > 1:
        raise ParseError("Too many file names for redirection.")
    return argv[0]


def _output_target(path, mode):
    return RedirectTarget.output(path, append=mode is RedirectMode.OUTPUT_APPEND)


def _on_input(state):
    if state.input_file is not None or state.mode is RedirectMode.INPUT:
        raise ParseError("Input redirection may only occur once.")
    if state.mode is RedirectMode.PIPING:
        raise ParseError("Cannot redirect input after piping.")
    if state.mode.is_output:
        raise ParseError("Cannot perform redirection before input.")
    if not state.argv:
        raise ParseError("Missing command for input redirection.")
    return ScanState(mode=RedirectMode.INPUT, pending=state.argv)


def _on_output(state, mode):
    if state.mode is RedirectMode.INPUT:
        path = _file_name(state.argv, "No file for input redirection.")
        return replace(state, mode=mode, argv=(), input_file=path), None

    if state.mode.is_output:
        # "> a > b": a is created, only b receives output
        path = _file_name(state.argv, "No file for output redirection.")
        action = TouchOutput(_output_target(path, state.mode))
        return replace(state, mode=mode, argv=()), action

    piping = state.mode is RedirectMode.PIPING
    if not state.argv:
        if piping:
            raise ParseError("Missing program to pipe to.")
        raise ParseError("Missing command for output redirection.")
    new_state = replace(state, mode=mode, argv=(), pending=state.argv, output_before_pipe=piping)
    return new_state, None


def _on_pipe(state):
    if state.mode.is_output:
        raise ParseError("Cannot perform output operation before piping.")

    if state.mode is RedirectMode.PIPING:
        if not state.argv:
            raise ParseError("Missing program to pipe to.")
        action = LaunchInterior(state.argv)
    elif state.mode is RedirectMode.INPUT:
        path = _file_name(state.argv, "No file for input redirection.")
        action = LaunchFirst(state.pending, path)
    else:
        if not state.argv:
            raise ParseError("Missing program to pipe from.")
        action = LaunchFirst(state.argv)
    return ScanState(mode=RedirectMode.PIPING), action


def step(state, token, max_args=MAX_ARGS):
    """Consume one token. Returns (new_state, action or None)."""
    mode = OPERATORS.get(token)
    if mode is None:
        if len(state.argv) >= max_args:
            raise ParseError("Too many args.")
        return replace(state, argv=state.argv + (token,)), None
    if mode is RedirectMode.INPUT:
        return _on_input(state), None
    if mode is RedirectMode.PIPING:
        return _on_pipe(state)
    return _on_output(state, mode)


def finish(state):
    """Resolve the end of the line into the last action (None for a blank line)."""
    mode = state.mode
    if mode is RedirectMode.NONE:
        return RunCommand(state.argv) if state.argv else None
    if mode is RedirectMode.PIPING:
        if not state.argv:
            raise ParseError("Missing program to pipe to.")
        return LaunchFinal(state.argv)
    if mode is RedirectMode.INPUT:
        path = _file_name(state.argv, "No file for input redirection.")
        return RunCommand(state.pending, RedirectTarget.input(path))

    output = _output_target(_file_name(state.argv, "No file for output redirection."), mode)
    if state.input_file is not None:
        return RunRedirected(state.pending, state.input_file, output)
    if state.output_before_pipe:
        return LaunchFinal(state.pending, output)
    return RunCommand(state.pending, output)


def iter_actions(tokens, max_args=MAX_ARGS):
    """Yield actions lazily; a ParseError surfaces after earlier actions."""
    state = ScanState()
    for token in tokens:
        state, action = step(state, token, max_args)
        if action is not None:
            yield action
    action = finish(state)
    if action is not None:
        yield action


def plan_line(line, dlim=COMMAND_SEPARATOR, max_args=MAX_ARGS):
    """All actions for line, without running anything."""
    return list(iter_actions(tokenize(line, dlim), max_args))


# ---------- Execution ----------
def _dispatch(runner, action, pipe):
    """Hand one action to runner. Returns the pipe pair live afterwards."""
    if isinstance(action, LaunchFirst):
        return runner.launch_first(action.argv, action.input_path)
    if isinstance(action, LaunchInterior):
        return runner.launch_interior(action.argv, pipe)
    if isinstance(action, LaunchFinal):
        runner.launch_final(action.argv, pipe, action.output)
        return None

    if isinstance(action, TouchOutput):
        runner.touch_output(action.target)
    elif isinstance(action, RunRedirected):
        runner.run_redirected(action.argv, action.input_path, action.output)
    else:
        runner.run_command(action.argv, action.redirect)
    return pipe


def parse_input_and_exec(line, dlim=COMMAND_SEPARATOR, runner=None, max_args=MAX_ARGS):
    """
    Parse line and run it.
    Returns EXEC_SUCCESS, or EXEC_FAILURE on a parse error or a failed
    system call in the parent. Child exit codes end up in runner.statuses.
    """
    if runner is None:
        runner = StageRunner()
    pipe = None
    status = EXEC_SUCCESS

    try:
        for action in iter_actions(tokenize(line, dlim), max_args):
            pipe = _dispatch(runner, action, pipe)
    except ParseError as exc:
        print(f"{PROGRAM_NAME}: {exc}", file=sys.stderr)
        status = EXEC_FAILURE
    except SystemCallError as exc:
        report(exc)
        status = EXEC_FAILURE
    finally:
        if pipe is not None:
            pipe.close()
        runner.wait_all()

    if runner.failed:
        status = EXEC_FAILURE
    return status
