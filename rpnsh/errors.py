"""
Error taxonomy for the rpnsh language engine.

Every error a unit of input can raise derives from RpnError. The machine
catches RpnError, reports it, and keeps the session alive. IncompleteInput is
the odd one out: it is a request for another line, not a failure.
"""


class RpnError(Exception):
    pass


class IncompleteInput(RpnError):
    """Input ends inside a string, a definition, or an open block."""


class CompileError(RpnError):
    """Unbalanced or misplaced control-flow words."""


class StackError(RpnError):
    """Too few operands, or operands of the wrong type."""


class ArithmeticFault(RpnError):
    pass


class ResolutionError(RpnError):
    """A bareword is neither a word nor an executable."""


class SystemFault(RpnError):
    """An operating-system call failed."""


class SpawnError(SystemFault):
    """An executable was found but could not be run."""
