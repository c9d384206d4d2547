"""
Stack values.

Str and Int are plain Python str and int. Output wraps the captured stdout of
a command so it can never be mistaken for a Str: it is piped into the next
command as stdin and only becomes an argument through >string.
"""


class Output:
    __slots__ = ('text',)

    def __init__(self, text: str = ''):
        self.text = text

    def __eq__(self, other):
        return isinstance(other, Output) and other.text == self.text

    def __hash__(self):
        return hash(('Output', self.text))

    def __repr__(self):
        return f'Output({self.text!r})'

    def __str__(self):
        return self.text

    def lines(self) -> list:
        """
        Split on '\\n' (a trailing '\\r' is stripped from each line). Empty
        lines in the middle are kept; a final terminator does not add an
        empty line, and empty text has no lines at all.
        """
        if not self.text:
            return []
        parts = self.text.split('\n')
        if parts[-1] == '':
            parts.pop()
        return [p[:-1] if p.endswith('\r') else p for p in parts]


def is_int(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def is_str(v) -> bool:
    return isinstance(v, str)


def is_output(v) -> bool:
    return isinstance(v, Output)


def type_name(v) -> str:
    if is_output(v): return 'output'
    if is_int(v):    return 'int'
    if is_str(v):    return 'string'
    return type(v).__name__


def as_text(v) -> str:
    """Textual form of any value: decimal for Int, raw text otherwise."""
    return str(v)


def show(v) -> str:
    """Display form used by .s: strings quoted, outputs in guillemets."""
    if is_output(v):
        return '«' + v.text.rstrip() + '»'
    if is_str(v):
        return f'"{v}"'
    return str(v)
