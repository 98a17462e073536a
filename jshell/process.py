"""Descriptor and process primitives, one system call each."""

from __future__ import annotations

import errno
import os
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass

import psutil

from jshell.config import EXEC_FAILURE, EXEC_NOT_EXECUTABLE, EXEC_NOT_FOUND

STDIN = 0
STDOUT = 1

# Python ignores these at startup; programs we exec expect the default action
RESTORED_SIGNALS = ("SIGPIPE", "SIGXFSZ")


class SystemCallError(OSError):
    """OSError tagged with the name of the call that failed."""

    def __init__(self, call, error):
        super().__init__(error.errno, error.strerror)
        self.call = call

    def __str__(self):
        return f"{self.call}: {self.strerror}"


def report(error):
    print(error, file=sys.stderr)


@contextmanager
def syscall(call):
    try:
        yield
    except SystemCallError:
        raise
    except OSError as exc:
        raise SystemCallError(call, exc) from exc


@contextmanager
def fatal_on_error():
    """Child side: report a failed call and terminate this process."""
    try:
        yield
    except SystemCallError as exc:
        report(exc)
        sys.stderr.flush()
        os._exit(EXEC_FAILURE)


class FileDescriptor:
    """Owning handle for a raw descriptor. It is released at most once."""

    def __init__(self, fd):
        self._fd = fd

    def fileno(self):
        if self._fd is None:
            raise ValueError("I/O operation on closed descriptor")
        return self._fd

    @property
    def closed(self):
        return self._fd is None

    def dup_onto(self, slot):
        with syscall("dup2()"):
            os.dup2(self.fileno(), slot)

    def close(self):
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        with syscall("close()"):
            os.close(fd)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def __repr__(self):
        state = "closed" if self._fd is None else self._fd
        return f"FileDescriptor({state})"


class PipePair:
    def __init__(self, read, write):
        self.read = read
        self.write = write

    @classmethod
    def create(cls):
        with syscall("pipe()"):
            read_fd, write_fd = os.pipe()
        return cls(FileDescriptor(read_fd), FileDescriptor(write_fd))

    @property
    def closed(self):
        return self.read.closed and self.write.closed

    def close(self):
        try:
            self.read.close()
        finally:
            self.write.close()

    def __repr__(self):
        return f"PipePair(read={self.read!r}, write={self.write!r})"


@dataclass(frozen=True)
class RedirectTarget:
    """A file a standard stream is redirected to or from."""

    path: str
    flags: int

    @classmethod
    def input(cls, path):
        return cls(path, os.O_RDONLY)

    @classmethod
    def output(cls, path, append=False):
        flags = os.O_WRONLY | os.O_CREAT
        flags |= os.O_APPEND if append else os.O_TRUNC
        return cls(path, flags)

    @property
    def append(self):
        return bool(self.flags & os.O_APPEND)

    @property
    def slot(self):
        """Standard stream this target replaces."""
        if self.flags & os.O_ACCMODE == os.O_RDONLY:
            return STDIN
        return STDOUT

    def open(self):
        with syscall("open()"):
            return FileDescriptor(os.open(self.path, self.flags, 0o666))


def restore_signals():
    for name in RESTORED_SIGNALS:
        if hasattr(signal, name):
            signal.signal(getattr(signal, name), signal.SIG_DFL)


def exec_program(argv):
    """Replace the current image with argv[0]. Returns only by exiting."""
    try:
        os.execvp(argv[0], list(argv))
    except OSError as exc:
        print(f"{argv[0]} execvp(): {exc.strerror}", file=sys.stderr)
        sys.stderr.flush()
        if exc.errno in (errno.ENOENT, errno.ENOTDIR):
            os._exit(EXEC_NOT_FOUND)
        os._exit(EXEC_NOT_EXECUTABLE)


def spawn(argv, prepare=None):
    """
    Fork a child that runs prepare() and then execs argv.
    Returns the child's pid, or None if fork() failed.
    """
    # Buffered parent output must not be written twice
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        pid = os.fork()
    except OSError as exc:
        report(SystemCallError("fork()", exc))
        return None

    if pid == 0:
        try:
            restore_signals()
            if prepare is not None:
                with fatal_on_error():
                    prepare()
            exec_program(argv)
        finally:
            os._exit(EXEC_FAILURE)
    return pid


def wait_child(pid):
    """Block until child pid exits and return its exit code."""
    try:
        _, status = os.waitpid(pid, 0)
    except ChildProcessError as exc:
        report(SystemCallError("waitpid()", exc))
        return None
    return os.waitstatus_to_exitcode(status)


def cleanup_children(timeout=1.0):
    """Terminate and reap any children the interpreter still has."""
    children = psutil.Process().children()
    for child in children:
        try:
            child.terminate()
            print(f"Terminated leftover process [{child.pid}]", file=sys.stderr)
        except psutil.NoSuchProcess:
            pass

    _, alive = psutil.wait_procs(children, timeout=timeout)
    for child in alive:
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    psutil.wait_procs(alive, timeout=timeout)
    return len(children)
