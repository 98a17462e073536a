import os
import sys

PROGRAM_NAME = "jshell"


def env_int(name, default):
    """Integer from the environment, or default when unset or malformed."""
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"Warning: Ignoring {name}={value!r}, using {default}", file=sys.stderr)
        return default


# Line grammar
MAX_INPUT = 4096
MAX_ARGS = env_int("JSHELL_MAX_ARGS", 10)  # program name + args, no terminator
COMMAND_SEPARATOR = " \t"

# Result codes
EXEC_SUCCESS = 0
EXEC_FAILURE = 1
EXEC_NOT_EXECUTABLE = 126
EXEC_NOT_FOUND = 127

# Block on every pipeline stage before launching the next one
WAIT_EACH_STAGE = os.getenv("JSHELL_WAIT_EACH_STAGE", "0") not in ("", "0")

# History
HISTORY_FILE = os.path.expanduser(os.getenv("JSHELL_HISTFILE", "~/.jshell_history"))
MAX_HISTORY = 1000
