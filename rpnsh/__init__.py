"""
rpnsh - a Forth-flavoured RPN shell.

Words manipulate a typed value stack; words the dictionary does not know are
run as external commands and their stdout is pushed back as an Output value.

    >>> from rpnsh import Machine
    >>> m = Machine()
    >>> m.evaluate('2 3 + .').output
    '5\\n'
"""

from rpnsh.config import VERSION
from rpnsh.errors import RpnError
from rpnsh.machine import Machine, Result
from rpnsh.values import Output

__all__ = ['Machine', 'Result', 'Output', 'RpnError']
__version__ = VERSION
