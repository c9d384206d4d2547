"""
Control-flow compiler.

Turns a token stream into a flat instruction list with absolute jump targets.
Forward jumps are emitted with a placeholder target and backpatched when the
closing word is seen; the open constructs live on an explicit control stack.

Instruction set:
  ('LIT',     v)     push literal Str or Int
  ('CALL',    name)  call word by name (resolved at run time)
  ('BRANCH',  addr)  jump to addr
  ('0BRANCH', addr, kw)
                     pop Int; jump to addr if it is 0. kw is the keyword
                     that emitted it (if, until, while)
  ('DEF', name, toks)
                     register a word definition
  ('DO', exit, op)   pop limit, start; push loop frame, or jump to exit if the
                     range is empty for the closing op (LOOP or +LOOP)
  ('LOOP',    back)  step +1; jump to back while index has not reached limit
  ('+LOOP',   back)  pop Int step; same, honouring the direction of the loop
  ('EACH',    exit)  pop Output; push its first line, or jump to exit if none
  ('NEXT',    back)  push next line and jump to back, or drop the each frame

A word definition (: name ... ;) becomes a single DEF instruction at its
position, so a word only exists once execution has passed its definition.
"""

from rpnsh.errors import CompileError, IncompleteInput


class Compiler:
    def __init__(self, final: bool = True):
        self.final = final
        self.code: list = []
        self.ctrl: list = []
        self._keywords = {
            'if':     self._if,
            'else':   self._else,
            'then':   self._then,
            'begin':  self._begin,
            'until':  self._until,
            'while':  self._while,
            'repeat': self._repeat,
            'do':     self._do,
            'loop':   lambda: self._end_loop('LOOP'),
            '+loop':  lambda: self._end_loop('+LOOP'),
            'each':   self._each,
        }

    def compile(self, tokens):
        tokens = iter(tokens)
        for kind, val in tokens:
            if kind == 'DEF':
                self._define(tokens)
            elif kind == 'END':
                raise CompileError('; without :')
            elif kind in ('STR', 'INT'):
                self.code.append(('LIT', val))
            elif val in self._keywords:
                self._keywords[val]()
            else:
                self.code.append(('CALL', val))
        if self.ctrl:
            self._unfinished(f'unclosed {self.ctrl[-1][0]}')
        return self.code

    def _unfinished(self, msg):
        if self.final:
            raise CompileError(msg)
        raise IncompleteInput(msg)

    def _top(self, *kinds):
        return bool(self.ctrl) and self.ctrl[-1][0] in kinds

    # ── Definitions ───────────────────────────────────────────────────────────

    def _define(self, tokens):
        head = next(tokens, None)
        if head is None:
            self._unfinished(': needs a name')
        kind, name = head
        if kind != 'WORD':
            raise CompileError(f': needs a name, got {name!r}')
        body = []
        for tok in tokens:
            if tok[0] == 'END':
                break
            if tok[0] == 'DEF':
                raise CompileError(f'nested : inside {name}')
            body.append(tok)
        else:
            self._unfinished(f'unclosed : {name}')
        # Reject an unbalanced body now rather than on first call.
        Compiler(final=True).compile(body)
        self.code.append(('DEF', name, body))

    # ── if / else / then ──────────────────────────────────────────────────────

    def _if(self):
        self.code.append(('0BRANCH', 0, 'if'))
        self.ctrl.append(('if', len(self.code) - 1))

    def _else(self):
        if not self._top('if'):
            raise CompileError('else without if')
        _, ia = self.ctrl.pop()
        self.code.append(('BRANCH', 0))
        ea = len(self.code) - 1
        self.code[ia] = ('0BRANCH', len(self.code), 'if')
        self.ctrl.append(('else', ea))

    def _then(self):
        if not self._top('if', 'else', 'each'):
            raise CompileError('then without if or each')
        kind, addr = self.ctrl.pop()
        if kind == 'each':
            self.code.append(('NEXT', addr + 1))
            self.code[addr] = ('EACH', len(self.code))
            return
        if kind == 'if':
            self.code[addr] = ('0BRANCH', len(self.code), 'if')
        else:
            self.code[addr] = ('BRANCH', len(self.code))

    # ── begin / until / while / repeat ────────────────────────────────────────

    def _begin(self):
        self.ctrl.append(('begin', len(self.code)))

    def _until(self):
        if not self._top('begin'):
            raise CompileError('until without begin')
        _, ba = self.ctrl.pop()
        self.code.append(('0BRANCH', ba, 'until'))

    def _while(self):
        if not self._top('begin'):
            raise CompileError('while without begin')
        self.code.append(('0BRANCH', 0, 'while'))
        self.ctrl.append(('while', len(self.code) - 1))

    def _repeat(self):
        if not self._top('while'):
            raise CompileError('repeat without while')
        _, wa = self.ctrl.pop()
        _, ba = self.ctrl.pop()
        self.code.append(('BRANCH', ba))
        self.code[wa] = ('0BRANCH', len(self.code), 'while')

    # ── do / loop / +loop ─────────────────────────────────────────────────────

    def _do(self):
        self.code.append(('DO', 0, None))
        self.ctrl.append(('do', len(self.code) - 1))

    def _end_loop(self, op):
        if not self._top('do'):
            raise CompileError(f'{op.lower()} without do')
        _, da = self.ctrl.pop()
        self.code.append((op, da + 1))
        self.code[da] = ('DO', len(self.code), op)

    # ── each / then ───────────────────────────────────────────────────────────

    def _each(self):
        self.code.append(('EACH', 0))
        self.ctrl.append(('each', len(self.code) - 1))


def compile_tokens(tokens, final: bool = True):
    """
    Compile one unit of input to a flat instruction list.

    With final=False an unfinished unit raises IncompleteInput so the caller
    can ask for another line; with final=True it is a CompileError.
    """
    try:
        return Compiler(final).compile(tokens)
    except IncompleteInput as e:
        if final:
            raise CompileError(str(e)) from None
        raise
