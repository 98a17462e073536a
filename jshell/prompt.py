import os
import socket


def get_prompt():
    """Prompt shown before each line: [user@host dir] JSHELL$"""
    user = os.getenv("USER")
    try:
        host = socket.gethostname()
        cwd = os.getcwd()
    except OSError:
        return "SHELL$ "
    if not user or not host:
        return "SHELL$ "

    base = os.path.basename(cwd) or "/"
    return f"[{user}@{host} {base}] JSHELL$ "
