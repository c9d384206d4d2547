"""
The rpnsh stack machine.

A Machine is one shell session: the value stack, the word dictionary, the
loop-index stack and the exit code of the last command. Each unit of input
(one line, or a multiline block once it is complete) is tokenized, compiled
to a flat instruction list and run by the inner interpreter.

Dictionary entries:
  {'kind': 'builtin', 'fn': callable, 'doc': str | None}
  {'kind': 'defined', 'tokens': [...], 'code': list | None}

Defined words keep their tokens and are compiled on first call; the compiled
code is cached on the entry, so redefining a word drops its cache with it.

Builtins validate every operand before popping any, so a failing word
leaves the stack exactly as it found it.
"""

from rpnsh import system
from rpnsh.bridge import EXIT_NOT_RUN, Bridge, plan
from rpnsh.compiler import compile_tokens
from rpnsh.errors import (ArithmeticFault, IncompleteInput, ResolutionError,
                          RpnError, SpawnError, StackError)
from rpnsh.tokenizer import tokenize
from rpnsh.values import (Output, as_text, is_int, is_output, is_str, show,
                          type_name)


class LoopFrame:
    __slots__ = ('index', 'limit', 'step', 'ascending')

    def __init__(self, index, limit, step=1):
        self.index = index
        self.limit = limit
        self.step = step
        self.ascending = index < limit

    def __repr__(self):
        return f'LoopFrame({self.index}, {self.limit}, {self.step})'


class Result:
    """Outcome of evaluating one unit: 'ok', 'incomplete' or 'error'."""
    __slots__ = ('status', 'output', 'error')

    def __init__(self, status, output='', error=None):
        self.status = status
        self.output = output
        self.error = error

    @property
    def ok(self):
        return self.status == 'ok'

    def __repr__(self):
        return f'Result({self.status!r}, {self.output!r}, {self.error!r})'


def _trunc_div(a, b):
    """Quotient rounded toward zero and the remainder that goes with it."""
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        q = -q
    return q, a - q * b


class Machine:
    def __init__(self, bridge: Bridge | None = None):
        self.stack: list = []
        self.loops: list = []
        self.words: dict = {}
        self.exit_code = 0
        self.dir_stack: list = []
        self.bridge = bridge or Bridge()
        self.tracer = None
        self.out: list = []
        self._each: list = []
        self._fresh = None
        self._define_builtins()
        system.register(self)

    # ── Evaluation ────────────────────────────────────────────────────────────

    def evaluate(self, source: str, final: bool = False) -> Result:
        """
        Run one unit of input. With final=False an unfinished unit comes back
        as 'incomplete' so the caller can read a continuation line.
        """
        self.out = []
        self._fresh = None
        if self.tracer is not None:
            self.tracer.steps = 0
        try:
            code = compile_tokens(tokenize(source), final=final)
        except IncompleteInput:
            return Result('incomplete')
        except RpnError as e:
            return Result('error', error=str(e))

        try:
            self._exec_code(code)
        except RpnError as e:
            return Result('error', ''.join(self.out), str(e))
        finally:
            # Frames left open by an aborted unit
            self.loops.clear()
            self._each.clear()

        if self._fresh is not None and self.stack and self.stack[-1] is self._fresh:
            text = self._fresh.text
            if text and not text.endswith('\n'):
                text += '\n'
            self.out.append(text)
        return Result('ok', ''.join(self.out))

    def define(self, name: str, tokens: list):
        self.words[name] = {'kind': 'defined', 'tokens': list(tokens), 'code': None}

    # ── Queries ───────────────────────────────────────────────────────────────

    def stack_counts(self) -> tuple:
        """(Str/Int cells, Output cells) for the prompt."""
        outputs = sum(1 for v in self.stack if is_output(v))
        return len(self.stack) - outputs, outputs

    def word_names(self) -> list:
        return sorted(self.words)

    def word_doc(self, name: str) -> str | None:
        defn = self.words.get(name)
        if defn is None:
            return None
        if defn['kind'] == 'builtin':
            return defn['doc']
        return ': ' + ' '.join([name] + [_token_text(t) for t in defn['tokens']]) + ' ;'

    # ── I/O ───────────────────────────────────────────────────────────────────

    def _emit(self, s):
        self.out.append(str(s))

    # ── Stack ─────────────────────────────────────────────────────────────────

    def _need(self, n, word):
        if len(self.stack) < n:
            raise StackError(f'{word}: stack underflow')

    def _check(self, word, n, pred, what):
        """Return the top n cells, deepest first, if all satisfy pred. No pops."""
        self._need(n, word)
        vals = self.stack[len(self.stack) - n:]
        if not all(pred(v) for v in vals):
            got = ' '.join(type_name(v) for v in vals)
            raise StackError(f'{word}: requires {what}, got {got}')
        return vals

    def _replace(self, n, *vals):
        """Drop the top n cells and push vals."""
        if n:
            del self.stack[-n:]
        self.stack.extend(vals)

    # ── Inner interpreter ─────────────────────────────────────────────────────

    def _exec_code(self, code: list):
        ip = 0
        while ip < len(code):
            instr = code[ip]
            op    = instr[0]

            if op == 'LIT':
                self._traced(instr, self.stack.append, instr[1])

            elif op == 'CALL':
                self._traced(instr, self._call, instr[1])

            elif op == 'BRANCH':
                ip = instr[1]; continue

            elif op == '0BRANCH':
                flag, = self._check(instr[2], 1, is_int, 'an integer flag')
                self.stack.pop()
                if flag == 0:
                    ip = instr[1]; continue

            elif op == 'DEF':
                self.define(instr[1], instr[2])

            elif op == 'DO':
                start, limit = self._check('do', 2, is_int, 'start and limit integers')
                del self.stack[-2:]
                # loop only counts up; +loop counts toward limit either way
                empty = start >= limit if instr[2] == 'LOOP' else start == limit
                if empty:
                    ip = instr[1]; continue
                self.loops.append(LoopFrame(start, limit))

            elif op in ('LOOP', '+LOOP'):
                f = self.loops[-1]
                if op == 'LOOP':
                    f.step = 1
                else:
                    f.step, = self._check('+loop', 1, is_int, 'an integer step')
                    self.stack.pop()
                f.index += f.step
                more = f.index < f.limit if f.ascending else f.index > f.limit
                if more:
                    ip = instr[1]; continue
                self.loops.pop()

            elif op == 'EACH':
                src, = self._check('each', 1, is_output, 'an output')
                self.stack.pop()
                lines = src.lines()
                if not lines:
                    ip = instr[1]; continue
                self._each.append([lines, 1])
                self.stack.append(lines[0])

            elif op == 'NEXT':
                frame = self._each[-1]
                lines, pos = frame
                if pos < len(lines):
                    frame[1] = pos + 1
                    self.stack.append(lines[pos])
                    ip = instr[1]; continue
                self._each.pop()

            else:
                raise RpnError(f'bad instruction: {op}')

            ip += 1

    def _traced(self, instr, fn, arg):
        if self.tracer is None:
            fn(arg)
            return
        before = list(self.stack)
        fn(arg)
        doc = self.word_doc(arg) if instr[0] == 'CALL' else None
        self.tracer.step(instr, before, self.stack, doc)

    def _call(self, name):
        defn = self.words.get(name)
        if defn is not None:
            self._exec_defn(name, defn)
        else:
            self._resolve(name)

    def _exec_defn(self, name, defn):
        if defn['kind'] == 'builtin':
            defn['fn']()
            return
        if defn['code'] is None:
            defn['code'] = compile_tokens(defn['tokens'])
        try:
            self._exec_code(defn['code'])
        except RecursionError:
            raise RpnError(f'{name}: recursion too deep') from None

    # ── Unknown words ─────────────────────────────────────────────────────────

    def _resolve(self, name):
        path = self.bridge.resolve(name)
        if path is not None:
            self._run_command(path, len(self.stack))
            return
        if system.has_glob(name):
            matches = system.expand_glob(name)
            if matches:
                self.stack.extend(matches)
                return
        if name.startswith('~'):
            self.stack.append(system.expand_user(name))
            return
        raise ResolutionError(f'{name}: not a word or command')

    def _run_command(self, path, top):
        """Run path against stack[:top]; the cells above top are consumed too."""
        window = plan(self.stack, top)
        try:
            done = self.bridge.run(path, window.args, window.stdin)
        except SpawnError:
            self.exit_code = EXIT_NOT_RUN
            raise
        self.exit_code = done.status
        self._fresh = Output(done.stdout)
        self._replace(len(self.stack) - window.cut, self._fresh)

    # ── Built-ins ─────────────────────────────────────────────────────────────

    def _def(self, name, fn, doc=None):
        self.words[name] = {'kind': 'builtin', 'fn': fn, 'doc': doc}

    def _define_builtins(self):
        d = self

        # ── Stack manipulation ────────────────────────────────────────────────
        def w_dup():
            d._need(1, 'dup'); d.stack.append(d.stack[-1])
        def w_drop():
            d._need(1, 'drop'); d.stack.pop()
        def w_swap():
            d._need(2, 'swap'); d.stack[-1], d.stack[-2] = d.stack[-2], d.stack[-1]
        def w_over():
            d._need(2, 'over'); d.stack.append(d.stack[-2])
        def w_rot():
            d._need(3, 'rot'); d.stack.append(d.stack.pop(-3))
        d._def('dup',   w_dup,  '( a -- a a ) Duplicate top item')
        d._def('drop',  w_drop, '( a -- ) Remove top item')
        d._def('swap',  w_swap, '( a b -- b a ) Swap top two items')
        d._def('over',  w_over, '( a b -- a b a ) Copy second item to top')
        d._def('rot',   w_rot,  '( a b c -- b c a ) Rotate top three items')
        d._def('clear', lambda: d.stack.clear(), '( ... -- ) Clear entire stack')
        d._def('depth', lambda: d.stack.append(len(d.stack)), '( -- n ) Push stack depth')

        # ── Arithmetic ───────────────────────────────────────────────────────
        def _divisor(op, b):
            if b == 0:
                raise ArithmeticFault(f'{op}: division by zero')

        def _binop(op):
            def fn():
                a, b = d._check(op, 2, is_int, 'two integers')
                if   op == '+':   r = (a + b,)
                elif op == '-':   r = (a - b,)
                elif op == '*':   r = (a * b,)
                elif op == '/':   _divisor(op, b); r = _trunc_div(a, b)[:1]
                elif op == 'mod': _divisor(op, b); r = _trunc_div(a, b)[1:]
                elif op == '/mod':_divisor(op, b); r = _trunc_div(a, b)
                d._replace(2, *r)
            return fn

        d._def('+',    _binop('+'),    '( a b -- a+b ) Add two numbers')
        d._def('-',    _binop('-'),    '( a b -- a-b ) Subtract b from a')
        d._def('*',    _binop('*'),    '( a b -- a*b ) Multiply two numbers')
        d._def('/',    _binop('/'),    '( a b -- a/b ) Divide a by b, truncating')
        d._def('mod',  _binop('mod'),  '( a b -- a%b ) Remainder of a/b')
        d._def('/mod', _binop('/mod'), '( a b -- quot rem ) Quotient and remainder')

        def w_muldiv():
            a, b, c = d._check('*/', 3, is_int, 'three integers')
            _divisor('*/', c)
            d._replace(3, _trunc_div(a * b, c)[0])
        d._def('*/', w_muldiv, '( a b c -- a*b/c ) Multiply then divide')

        # ── Comparison (true = 1, false = 0) ─────────────────────────────────
        def _same_type(a, b):
            return (is_int(a) and is_int(b)) or (is_str(a) and is_str(b))

        def _eq(op):
            def fn():
                d._need(2, op)
                a, b = d.stack[-2:]
                if not _same_type(a, b):
                    raise StackError(f'{op}: requires two integers or two strings, '
                                     f'got {type_name(a)} {type_name(b)}')
                res = a == b if op == '=' else a != b
                d._replace(2, 1 if res else 0)
            return fn
        d._def('=',  _eq('='),  '( a b -- flag ) Test equality of two ints or two strings')
        d._def('<>', _eq('<>'), '( a b -- flag ) Test inequality of two ints or two strings')

        def _cmp(op):
            def fn():
                a, b = d._check(op, 2, is_int, 'two integers')
                res = {'<': a < b, '>': a > b, '<=': a <= b, '>=': a >= b}[op]
                d._replace(2, 1 if res else 0)
            return fn
        for op, doc in (('>', 'greater than'), ('<', 'less than'),
                        ('>=', 'greater or equal'), ('<=', 'less or equal')):
            d._def(op, _cmp(op), f'( a b -- flag ) Test {doc}')

        # ── Logic ─────────────────────────────────────────────────────────────
        def _logic(op):
            def fn():
                a, b = (x != 0 for x in d._check(op, 2, is_int, 'two integers'))
                res = {'and': a and b, 'or': a or b, 'xor': a != b}[op]
                d._replace(2, 1 if res else 0)
            return fn
        d._def('and', _logic('and'), '( a b -- flag ) Boolean AND')
        d._def('or',  _logic('or'),  '( a b -- flag ) Boolean OR')
        d._def('xor', _logic('xor'), '( a b -- flag ) Boolean XOR')

        def w_not():
            a, = d._check('not', 1, is_int, 'an integer')
            d._replace(1, 0 if a else 1)
        d._def('not', w_not, '( a -- flag ) Boolean NOT')

        # ── Strings ───────────────────────────────────────────────────────────
        def w_concat():
            a, b = d._check('concat', 2, is_str, 'two strings')
            d._replace(2, a + b)
        d._def('concat', w_concat, '( a b -- ab ) Concatenate two strings')

        def _decorate(word, n, build):
            def fn():
                base, *deco = d._check(word, n, is_str, f'{n} strings')
                d._replace(n, build(base, *deco) if base else base)
            return fn
        d._def('?prefix', _decorate('?prefix', 2, lambda s, p: p + s),
               '( s pre -- s\' ) Prepend pre unless s is empty')
        d._def('?suffix', _decorate('?suffix', 2, lambda s, q: s + q),
               '( s suf -- s\' ) Append suf unless s is empty')
        d._def('?wrap',   _decorate('?wrap', 3, lambda s, p, q: p + s + q),
               '( s pre suf -- s\' ) Wrap s in pre and suf unless s is empty')

        # ── Conversion ────────────────────────────────────────────────────────
        def w_to_output():
            v, = d._check('>output', 1, lambda v: True, 'a value')
            d._replace(1, v if is_output(v) else Output(as_text(v)))
        def w_to_string():
            v, = d._check('>string', 1, lambda v: True, 'a value')
            d._replace(1, as_text(v))
        d._def('>output', w_to_output, '( string -- output ) Convert Str or Int to Output for piping')
        d._def('>string', w_to_string, '( output/int -- string ) Convert Output or Int to Str')

        # ── Loop indices ──────────────────────────────────────────────────────
        def w_i():
            if not d.loops:
                raise StackError('i: not inside a do loop')
            d.stack.append(d.loops[-1].index)
        def w_j():
            if len(d.loops) < 2:
                raise StackError('j: not inside a nested do loop')
            d.stack.append(d.loops[-2].index)
        d._def('i', w_i, '( -- index ) Push current loop index')
        d._def('j', w_j, '( -- index ) Push outer loop index')

        # ── Output ────────────────────────────────────────────────────────────
        def w_dot():
            d._need(1, '.')
            text = as_text(d.stack.pop())
            d._emit(text if text.endswith('\n') else text + '\n')
        def w_type():
            d._need(1, 'type')
            d._emit(as_text(d.stack.pop()))
        def w_dot_s():
            d._emit(f'<{len(d.stack)}> ' + ' '.join(show(v) for v in d.stack) + '\n')
        d._def('.',    w_dot,   '( a -- ) Print and remove top item with newline')
        d._def('type', w_type,  '( a -- ) Print and remove top item without newline')
        d._def('.s',   w_dot_s, '( -- ) Display entire stack without modifying it')

        # ── Commands ──────────────────────────────────────────────────────────
        def w_exec():
            name, = d._check('exec', 1, is_str, 'a command name')
            path = d.bridge.resolve(name)
            if path is None:
                raise ResolutionError(f'exec: {name}: command not found')
            d._run_command(path, len(d.stack) - 1)
        def w_exit_code():
            d.stack.append(d.exit_code)
        d._def('exec',      w_exec,      '( args... cmd -- output ) Execute a command by name')
        d._def('?',         w_exit_code, '( -- code ) Push exit code of last command')
        d._def('$exitcode', w_exit_code, '( -- code ) Push exit code of last command')

        # ── Introspection ─────────────────────────────────────────────────────
        def w_words():
            d._emit(' '.join(d.word_names()) + '\n')
        def w_see():
            name, = d._check('see', 1, is_str, 'a word name')
            d.stack.pop()
            doc = d.word_doc(name)
            if name not in d.words:
                d._emit(f'{name} is not defined\n')
            elif doc is None:
                d._emit(f'{name} is a builtin\n')
            elif d.words[name]['kind'] == 'builtin':
                d._emit(f'{name}: {doc}\n')
            else:
                d._emit(doc + '\n')
        d._def('words', w_words, '( -- ) List all available words')
        d._def('see',   w_see,   '( name -- ) Show word definition or documentation')
        d._def('help',  lambda: d._emit(HELP_TEXT), '( -- ) Show help')


def _token_text(tok):
    kind, val = tok
    if kind == 'STR':
        return f'"{val}"'
    return str(val)


HELP_TEXT = """\
Values:
  42  -7                      integers
  "hello world"               strings
  «...»                       captured command output

Commands:
  ls                          run ls, push its output
  "-l" "/tmp" ls              strings below a command become its arguments
  "a" "b" 1 echo              an integer on top limits how many are taken
  ls "txt" grep               output below the arguments is piped to stdin
  ?  $exitcode                exit code of the last command
  "name" exec                 run a command by name

Stack:       dup drop swap over rot clear depth .s
Printing:    . type
Arithmetic:  + - * / mod /mod */
Compare:     = <> < > <= >=
Logic:       and or not xor
Strings:     concat ?prefix ?suffix ?wrap
Convert:     >output >string
Files:       >file >>file
Environment: getenv setenv unsetenv env-append env-prepend env
Directories: cd pushd popd

Control flow:
  cond if ... else ... then
  begin ... cond until
  begin ... cond while ... repeat
  start limit do ... i ... loop
  start limit do ... step +loop
  output each ... then        once per line, line pushed as string

Definitions:
  : name ... ;
  words    "name" see    help
"""
