"""
Step tracer.

Attach a Tracer to Machine.tracer and every literal push and word call is
reported on stderr as the change it made to the stack:

  Step 3 dup                  → push 5
  Step 4 *                    → pop 5, 5; push 25

Level 2 adds the stack after each step, level 3 the word's documentation.
"""

import sys

from colorama import Fore, Style

from rpnsh.values import is_output, is_str


def fmt_value(v) -> str:
    if is_output(v):
        lines = v.text.splitlines()
        if len(lines) > 1:
            return f'<<output {len(lines)} lines>>'
        text = v.text.rstrip()
        if len(text) > 30:
            text = text[:27] + '...'
        return f'<<{text}>>'
    if is_str(v):
        return f'"{v}"'
    return str(v)


def _colored(v) -> str:
    if is_output(v): color = Fore.MAGENTA
    elif is_str(v):  color = Fore.YELLOW
    else:            color = Fore.CYAN
    return color + fmt_value(v) + Style.RESET_ALL


def describe_diff(before: list, after: list) -> str:
    common = 0
    for a, b in zip(before, after):
        if a is not b and a != b:
            break
        common += 1
    popped = before[common:]
    pushed = after[common:]

    parts = []
    if popped:
        parts.append('pop ' + ', '.join(fmt_value(v) for v in reversed(popped)))
    if pushed:
        parts.append('push ' + ', '.join(fmt_value(v) for v in pushed))
    return '; '.join(parts) or '(no stack change)'


class Tracer:
    def __init__(self, level: int = 1, stream=None):
        self.level = level
        self.stream = stream or sys.stderr
        self.steps = 0

    def step(self, instr, before, after, doc=None):
        self.steps += 1
        op, arg = instr[0], instr[1]
        token = fmt_value(arg) if op == 'LIT' else arg
        print(f'  {Style.DIM}Step {self.steps}{Style.RESET_ALL} {token:<20} '
              f'→ {describe_diff(before, after)}', file=self.stream)
        if self.level >= 3 and doc:
            print(f'  {"":>28} {Style.DIM}{doc}{Style.RESET_ALL}', file=self.stream)
        if self.level >= 2:
            stack = ' '.join(_colored(v) for v in after) or '(empty)'
            print(f'  {"":>28} {Style.DIM}Stack:{Style.RESET_ALL} {stack}', file=self.stream)
