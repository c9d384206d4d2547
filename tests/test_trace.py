import io
import re

from rpnsh import Machine, Output
from rpnsh.trace import Tracer, describe_diff, fmt_value

ANSI = re.compile(r'\x1b\[[0-9;]*m')


def plain(text):
    return ANSI.sub('', text)


class TestFormat():
    def test_values(self):
        assert fmt_value(5) == '5'
        assert fmt_value('hi') == '"hi"'
        assert fmt_value(Output('one\n')) == '<<one>>'

    def test_long_output_is_truncated(self):
        assert fmt_value(Output('x' * 40)) == '<<' + 'x' * 27 + '...>>'

    def test_multiline_output(self):
        assert fmt_value(Output('a\nb\nc\n')) == '<<output 3 lines>>'


class TestDiff():
    def test_push(self):
        assert describe_diff([1], [1, 2]) == 'push 2'

    def test_pop_and_push(self):
        assert describe_diff([5, 5], [25]) == 'pop 5, 5; push 25'

    def test_pop_order_is_top_first(self):
        assert describe_diff([1, 2], []) == 'pop 2, 1'

    def test_no_change(self):
        assert describe_diff([1], [1]) == '(no stack change)'

    def test_swap(self):
        assert describe_diff([1, 2], [2, 1]) == 'pop 2, 1; push 2, 1'


class TestTracer():
    def test_steps(self):
        buf = io.StringIO()
        m = Machine()
        m.tracer = Tracer(1, buf)
        m.evaluate('5 dup *')
        lines = plain(buf.getvalue()).splitlines()
        assert len(lines) == 3
        assert lines[0].split() == ['Step', '1', '5', '→', 'push', '5']
        assert lines[2].split() == ['Step', '3', '*', '→', 'pop', '5,', '5;', 'push', '25']

    def test_steps_restart_per_unit(self):
        buf = io.StringIO()
        m = Machine()
        m.tracer = Tracer(1, buf)
        m.evaluate('1')
        m.evaluate('2')
        lines = plain(buf.getvalue()).splitlines()
        assert [line.split()[1] for line in lines] == ['1', '1']

    def test_string_literal(self):
        buf = io.StringIO()
        m = Machine()
        m.tracer = Tracer(1, buf)
        m.evaluate('"a"')
        assert '"a"' in plain(buf.getvalue()).split()[2]

    def test_level_two_shows_stack(self):
        buf = io.StringIO()
        m = Machine()
        m.tracer = Tracer(2, buf)
        m.evaluate('1 2')
        lines = plain(buf.getvalue()).splitlines()
        assert lines[-1].split() == ['Stack:', '1', '2']

    def test_level_three_shows_doc(self):
        buf = io.StringIO()
        m = Machine()
        m.tracer = Tracer(3, buf)
        m.evaluate('1 dup')
        assert 'Duplicate top item' in buf.getvalue()

    def test_trace_does_not_change_results(self):
        m = Machine()
        m.tracer = Tracer(3, io.StringIO())
        res = m.evaluate(': sq dup * ; 0 3 do i sq loop')
        assert res.ok
        assert m.stack == [0, 1, 4]
