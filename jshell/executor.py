"""
Executors for single commands and pipeline stages.

Every launcher spawns exactly one child. A pipe pair handed to a launcher
is owned by it from then on: it is closed in the parent once the child
that consumes it has been spawned, whether or not the spawn succeeded.
"""

from jshell.config import WAIT_EACH_STAGE
from jshell.process import (
    STDIN,
    STDOUT,
    PipePair,
    RedirectTarget,
    SystemCallError,
    report,
    spawn,
    wait_child,
)


def _move(fd, slot):
    """Child side: put fd on a standard stream slot and drop the original."""
    fd.dup_onto(slot)
    fd.close()


class StageRunner:
    """
    Spawns commands and pipeline stages and reaps their children.

    With wait_each_stage the parent blocks on each child right after
    spawning it, so stage N exits before stage N+1 exists. Otherwise
    children accumulate in `running` and wait_all() reaps them, which lets
    every stage of a pipeline run at the same time.
    """

    def __init__(self, wait_each_stage=None):
        if wait_each_stage is None:
            wait_each_stage = WAIT_EACH_STAGE
        self.wait_each_stage = wait_each_stage
        self.running = []
        self.statuses = []
        self.failed = False

    def _started(self, pid):
        if pid is None:
            self.failed = True
            return
        self.running.append(pid)
        if self.wait_each_stage:
            self.wait_all()

    def _handoff(self, pid, pipe):
        """Like _started, but pipe is closed if the wait is interrupted."""
        try:
            self._started(pid)
        except BaseException:
            pipe.close()
            raise

    def wait_all(self):
        """
        Reap every outstanding child in spawn order. A pid leaves `running`
        only once reaped, so an interrupted call can simply be repeated.
        """
        while self.running:
            self.statuses.append(wait_child(self.running[0]))
            self.running.pop(0)
        return self.statuses

    # ---------- Single commands ----------
    def run_command(self, argv, redirect=None):
        """Run argv with at most one standard stream redirected."""
        if redirect is None:
            self._started(spawn(argv))
            return

        try:
            target = redirect.open()
        except SystemCallError as exc:
            report(exc)
            self.failed = True
            return
        with target:
            self._started(spawn(argv, lambda: _move(target, redirect.slot)))

    def run_redirected(self, argv, input_path, output):
        """Run argv reading input_path and writing output. Files open in the child."""

        def prepare():
            source = RedirectTarget.input(input_path).open()
            sink = output.open()
            source.dup_onto(STDIN)
            sink.dup_onto(STDOUT)
            source.close()
            sink.close()

        self._started(spawn(argv, prepare))

    def touch_output(self, target):
        """Create (or truncate) an output file that is overridden later on the line."""
        try:
            target.open().close()
        except SystemCallError as exc:
            report(exc)
            self.failed = True

    # ---------- Pipeline stages ----------
    def launch_first(self, argv, input_path=None):
        """Start the head of a pipeline and return the pipe it writes into."""
        pipe = PipePair.create()

        def prepare():
            if input_path is not None:
                _move(RedirectTarget.input(input_path).open(), STDIN)
            pipe.write.dup_onto(STDOUT)
            pipe.close()

        # Parent keeps both ends: the next stage still needs the read end
        self._handoff(spawn(argv, prepare), pipe)
        return pipe

    def launch_interior(self, argv, previous):
        """Start a middle stage reading previous and writing a new pipe."""
        try:
            pipe = PipePair.create()

            def prepare():
                previous.read.dup_onto(STDIN)
                pipe.write.dup_onto(STDOUT)
                previous.close()
                pipe.close()

            pid = spawn(argv, prepare)
        finally:
            previous.close()
        self._handoff(pid, pipe)
        return pipe

    def launch_final(self, argv, previous, output=None):
        """Start the last stage, reading previous and writing stdout or output."""
        try:

            def prepare():
                previous.read.dup_onto(STDIN)
                if output is not None:
                    _move(output.open(), STDOUT)
                previous.close()

            pid = spawn(argv, prepare)
        finally:
            previous.close()
        self._started(pid)
