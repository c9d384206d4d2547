#!/usr/bin/env python3
"""
rpnsh - a stack-based RPN shell.

  rpnsh                 interactive shell (reads ~/.rpnshrc first)
  rpnsh script.rpn      run a script
  rpnsh -c '"/" ls'     run one command line
  cmd | rpnsh           run a script from standard input
"""

import argparse
import sys

import colorama

from rpnsh import config
from rpnsh.machine import Machine
from rpnsh.repl import load_rc, repl, run_script
from rpnsh.trace import Tracer


def parse_args(argv=None):
    p = argparse.ArgumentParser(prog='rpnsh', description='Stack-based RPN shell.')
    p.add_argument('script', nargs='?', help='script file to run')
    p.add_argument('-c', dest='command', metavar='COMMAND', help='run COMMAND and exit')
    p.add_argument('--no-rc', action='store_true', help='do not read the startup file')
    p.add_argument('--trace', type=int, default=0, metavar='LEVEL',
                   help='trace every step on stderr (1-3)')
    p.add_argument('-v', '--verbose', action='store_true', help='debug logging')
    p.add_argument('--version', action='version', version=f'%(prog)s {config.VERSION}')
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config.setup_logging(args.verbose)
    colorama.just_fix_windows_console()

    m = Machine()
    if args.trace:
        m.tracer = Tracer(args.trace)

    if args.command is not None:
        return run_script(m, args.command.splitlines())
    if args.script:
        with open(args.script) as f:
            return run_script(m, f)
    if not sys.stdin.isatty():
        return run_script(m, sys.stdin)

    if not args.no_rc:
        load_rc(m, config.rc_path())
    repl(m)
    return 0


if __name__ == '__main__':
    sys.exit(main())
