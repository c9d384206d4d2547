"""
Tokenizer.

Token kinds:
  ('STR',  text)   "quoted text", no escapes, may be empty
  ('INT',  n)      bareword matching -?[0-9]+
  ('WORD', name)   any other bareword
  ('DEF',  ':')    start of a word definition
  ('END',  ';')    end of a word definition
"""

import re

from rpnsh.compiler import compile_tokens
from rpnsh.errors import IncompleteInput, RpnError

_INT_RE = re.compile(r'-?[0-9]+\Z')

WHITESPACE = ' \t\r\n\f\v'


def classify(word: str) -> tuple:
    if word == ':':
        return ('DEF', word)
    if word == ';':
        return ('END', word)
    if _INT_RE.match(word):
        return ('INT', int(word))
    return ('WORD', word)


def tokenize(src: str):
    """Yield tokens lazily. An unterminated string raises IncompleteInput."""
    i, n = 0, len(src)
    while i < n:
        while i < n and src[i] in WHITESPACE:
            i += 1
        if i >= n:
            break
        if src[i] == '"':
            j = src.find('"', i + 1)
            if j < 0:
                raise IncompleteInput('unterminated string')
            yield ('STR', src[i+1:j])
            i = j + 1
            continue
        j = i
        while j < n and src[j] not in WHITESPACE and src[j] != '"':
            j += 1
        yield classify(src[i:j])
        i = j


def is_incomplete(src: str) -> bool:
    """True if src ends inside a string, a definition or an open block."""
    try:
        compile_tokens(tokenize(src), final=False)
    except IncompleteInput:
        return True
    except RpnError:
        # Malformed input is complete; evaluation will report it.
        return False
    return False
