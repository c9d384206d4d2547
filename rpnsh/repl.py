"""
REPL driver, script runner and startup-file loader.

All three feed text to Machine.evaluate one unit at a time, gathering lines
while is_incomplete reports the unit unfinished. Lines starting with '#' are
skipped.
"""

import logging
import sys

from colorama import Fore, Style

from rpnsh import config
from rpnsh.tokenizer import is_incomplete

log = logging.getLogger(__name__)

CONTINUATION = '...> '


# ── Feeding a finite source ──────────────────────────────────────────────────

def units(machine, lines):
    """
    Evaluate lines from a finite source, yielding (source, result) per unit.
    Whatever is still incomplete when the lines run out is compiled as final,
    which turns it into an error.
    """
    buf = []
    for line in lines:
        line = line.rstrip('\n')
        if line.lstrip().startswith('#'):
            continue
        if not buf and not line.strip():
            continue
        buf.append(line)
        src = '\n'.join(buf)
        if is_incomplete(src):
            continue
        buf = []
        yield src, machine.evaluate(src, final=True)
    if buf:
        src = '\n'.join(buf)
        yield src, machine.evaluate(src, final=True)


def run_script(machine, lines, out=None, err=None) -> int:
    """Run a script; returns 1 if any unit failed, else 0."""
    out = out or sys.stdout
    err = err or sys.stderr
    status = 0
    for _, res in units(machine, lines):
        out.write(res.output)
        if not res.ok:
            print(f'Error: {res.error}', file=err)
            status = 1
    return status


def load_rc(machine, path, out=None):
    """Evaluate a startup file. Failing units are logged and skipped."""
    if path is None or not path.is_file():
        return
    out = out or sys.stdout
    log.debug('loading %s', path)
    with open(path) as f:
        for src, res in units(machine, f):
            out.write(res.output)
            if not res.ok:
                log.warning('%s: %s: %s', path, src.splitlines()[0], res.error)


# ── Interactive loop ─────────────────────────────────────────────────────────

def prompt_text(machine) -> str:
    """rpnsh> / rpnsh[3]> / rpnsh[:1]> / rpnsh[2:1]>  (inputs:outputs)"""
    inputs, outputs = machine.stack_counts()
    if not inputs and not outputs:
        return 'rpnsh> '
    if not outputs:
        return f'rpnsh[{inputs}]> '
    if not inputs:
        return f'rpnsh[:{outputs}]> '
    return f'rpnsh[{inputs}:{outputs}]> '


def _rl(code):
    # Mark escape codes as zero-width so readline measures the prompt right.
    return '\001' + code + '\002'


def build_prompt(machine) -> str:
    name, bracket, counts = prompt_text(machine)[:-2].partition('[')
    return (_rl(Fore.GREEN) + name + _rl(Fore.YELLOW) + bracket + counts
            + _rl(Style.RESET_ALL) + '> ')


def _setup_history():
    try:
        import readline
    except ImportError:
        return None
    path = config.history_path()
    if path is None:
        return None
    readline.set_history_length(config.HISTORY_LENGTH)
    try:
        readline.read_history_file(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.warning('cannot read history %s: %s', path, e)
    return readline, path


def _save_history(hist):
    if hist is None:
        return
    readline, path = hist
    try:
        readline.write_history_file(path)
    except OSError as e:
        log.warning('cannot write history %s: %s', path, e)


def repl(machine):
    hist = _setup_history()
    print(f'rpnsh {config.VERSION}  -  type help for examples, exit or Ctrl-D to quit')
    buf = []
    try:
        while True:
            try:
                line = input(CONTINUATION if buf else build_prompt(machine))
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                buf = []
                continue

            if not buf:
                if not line.strip():
                    continue
                if line.strip() in ('exit', 'quit'):
                    break

            buf.append(line)
            src = '\n'.join(buf)
            if is_incomplete(src):
                continue
            buf = []
            try:
                res = machine.evaluate(src, final=True)
            except KeyboardInterrupt:
                print('\nInterrupted: stack and definitions preserved')
                continue
            sys.stdout.write(res.output)
            if not res.ok:
                print(f'{Fore.RED}Error:{Style.RESET_ALL} {res.error}', file=sys.stderr)
    finally:
        _save_history(hist)
