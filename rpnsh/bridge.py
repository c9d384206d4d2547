"""
Command-execution bridge.

Given the live stack, works out which cells become a command's arguments and
which Output (if any) becomes its stdin, runs the command to completion and
hands back its captured stdout and exit status. The bridge never touches the
stack itself: the machine truncates it only once the command has run.
"""

import logging
import os
import shutil
import subprocess

from rpnsh.errors import SpawnError, StackError
from rpnsh.system import expand_user
from rpnsh.values import as_text, is_int, is_output

log = logging.getLogger(__name__)

EXIT_NOT_RUN = 127


class Window:
    """The part of the stack a command consumes."""
    __slots__ = ('args', 'stdin', 'cut')

    def __init__(self, args, stdin, cut):
        self.args  = args    # argument strings, bottom-to-top order
        self.stdin = stdin   # Output text, or None
        self.cut   = cut     # stack is truncated to this length afterwards

    def __repr__(self):
        return f'Window(args={self.args!r}, stdin={self.stdin!r}, cut={self.cut})'


class Completed:
    __slots__ = ('stdout', 'status')

    def __init__(self, stdout: str, status: int):
        self.stdout = stdout
        self.status = status


def plan(stack: list, top: int | None = None) -> Window:
    """
    Compute the argument window for a command about to run on stack[:top].

    An Int on top is an explicit depth. Below it, consecutive Str/Int cells
    are arguments until the depth is reached, an Output is met, or the stack
    runs out. An Output right below the arguments is the command's stdin.
    """
    if top is None:
        top = len(stack)
    depth = None
    if top and is_int(stack[top - 1]):
        depth = stack[top - 1]
        if depth < 0:
            raise StackError(f'negative argument depth: {depth}')
        top -= 1

    i = top
    while i > 0 and (depth is None or top - i < depth):
        if is_output(stack[i - 1]):
            break
        i -= 1

    args = [as_text(v) for v in stack[i:top]]
    if i > 0 and is_output(stack[i - 1]):
        return Window(args, stack[i - 1].text, i - 1)
    return Window(args, None, i)


def is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def _status(returncode: int) -> int:
    # Killed by a signal: report it the way shells do.
    if returncode < 0:
        return 128 - returncode
    return returncode


class Bridge:
    def resolve(self, name: str) -> str | None:
        """Absolute/relative paths are taken as-is, bare names searched on PATH."""
        name = expand_user(name)
        if '/' in name:
            return name if is_executable(name) else None
        return shutil.which(name)

    def run(self, path: str, args: list, stdin: str | None = None) -> Completed:
        log.debug('exec %s %r%s', path, args, ' (stdin)' if stdin is not None else '')
        try:
            proc = subprocess.run(
                [path, *args],
                input=None if stdin is None else stdin.encode('utf-8'),
                stdin=subprocess.DEVNULL if stdin is None else None,
                stdout=subprocess.PIPE,
            )
        except OSError as e:
            log.debug('exec %s failed: %s', path, e)
            raise SpawnError(f'{path}: {e.strerror or e}') from e
        status = _status(proc.returncode)
        log.debug('exec %s exited with %d', path, status)
        return Completed(proc.stdout.decode('utf-8', errors='replace'), status)
