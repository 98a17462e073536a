"""Interactive read-eval loop around the pipeline builder."""

import argparse
import sys

from jshell.config import EXEC_SUCCESS, PROGRAM_NAME
from jshell.executor import StageRunner
from jshell.history import init_readline, load_history, save_history
from jshell.parser import parse_input_and_exec
from jshell.process import cleanup_children
from jshell.prompt import get_prompt

# Result of the last line run
last_status = EXEC_SUCCESS


def init_shell():
    print()
    print("  |  jshell  |")
    print("  |  type 'exit' or Ctrl+D to leave  |")
    print()


def exit_shell():
    print()
    print("...Exiting shell")
    print("Exited shell!")
    print()


def read_line():
    """Next line without its terminator, or None at end of input."""
    try:
        return input(get_prompt())
    except EOFError:
        print()
        return None


def reap(runner):
    """Finish reaping runner's children, even across further Ctrl+C."""
    while runner.running:
        try:
            runner.wait_all()
        except KeyboardInterrupt:
            print()


def main_loop(wait_each_stage=None):
    """Run lines until exit or end of input. Always returns EXEC_SUCCESS."""
    global last_status

    init_readline()
    load_history()
    init_shell()

    try:
        while True:
            runner = None
            try:
                line = read_line()
                if line is None:
                    break

                line = line.strip()
                if not line:
                    continue
                if line == "exit":
                    break

                runner = StageRunner(wait_each_stage)
                last_status = parse_input_and_exec(line, runner=runner)
            except KeyboardInterrupt:
                # Ctrl+C does not leave the shell
                print()
                if runner is not None:
                    reap(runner)
    finally:
        save_history()
        cleanup_children()
        exit_shell()

    return EXEC_SUCCESS


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog=PROGRAM_NAME,
        description="Run programs connected by pipes and I/O redirection.",
    )
    parser.add_argument(
        "-c",
        dest="command",
        metavar="LINE",
        help="Run a single LINE and exit with its status.",
    )
    parser.add_argument(
        "--wait-each-stage",
        action="store_true",
        default=None,
        help="Wait for every pipeline stage to exit before starting the next one.",
    )
    args = parser.parse_args(argv)

    if args.command is not None:
        runner = StageRunner(args.wait_each_stage)
        sys.exit(parse_input_and_exec(args.command, runner=runner))
    sys.exit(main_loop(args.wait_each_stage))
