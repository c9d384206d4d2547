"""
Operating-system builtins: environment variables, working directory, files,
and the glob and ~ expansions applied to unknown barewords.

These are ordinary dictionary words; only their implementation reaches out
to the OS.
"""

import glob
import os

from rpnsh.errors import StackError, SystemFault
from rpnsh.values import as_text, is_output, is_str

GLOB_CHARS = '*?['


def has_glob(word: str) -> bool:
    return any(c in word for c in GLOB_CHARS)


def expand_glob(pattern: str) -> list:
    return sorted(glob.glob(expand_user(pattern)))


def expand_user(path: str) -> str:
    return os.path.expanduser(path) if path.startswith('~') else path


def _fault(word, e):
    return SystemFault(f'{word}: {e.filename or ""}: {e.strerror or e}')


def register(m):
    """Add the OS builtins to machine m."""

    # ── Environment ──────────────────────────────────────────────────────────
    def w_getenv():
        key, = m._check('getenv', 1, is_str, 'a string key')
        m._replace(1, os.environ.get(key, ''))

    def w_setenv():
        value, key = m._check('setenv', 2, is_str, 'two strings (value key)')
        os.environ[key] = value
        m._replace(2)

    def w_unsetenv():
        key, = m._check('unsetenv', 1, is_str, 'a string key')
        os.environ.pop(key, None)
        m._replace(1)

    def _env_join(word, prepend):
        def fn():
            value, key = m._check(word, 2, is_str, 'two strings (value key)')
            old = os.environ.get(key)
            if old:
                value = value + os.pathsep + old if prepend else old + os.pathsep + value
            os.environ[key] = value
            m._replace(2)
        return fn

    def w_env():
        m.stack.extend(f'{k}={v}' for k, v in sorted(os.environ.items()))

    m._def('getenv',      w_getenv,   '( key -- value ) Get environment variable')
    m._def('setenv',      w_setenv,   '( value key -- ) Set environment variable')
    m._def('unsetenv',    w_unsetenv, '( key -- ) Unset environment variable')
    m._def('env-append',  _env_join('env-append', False),
           '( value key -- ) Append to a path-separated env var')
    m._def('env-prepend', _env_join('env-prepend', True),
           '( value key -- ) Prepend to a path-separated env var')
    m._def('env',         w_env,      '( -- vars... ) Push all environment variables')

    # ── Directories ──────────────────────────────────────────────────────────
    def _chdir(word, path):
        try:
            os.chdir(expand_user(path))
        except OSError as e:
            raise _fault(word, e) from e

    def w_cd():
        path, = m._check('cd', 1, is_str, 'a path string')
        _chdir('cd', path)
        m._replace(1)

    def w_pushd():
        path, = m._check('pushd', 1, is_str, 'a path string')
        here = os.getcwd()
        _chdir('pushd', path)
        m.dir_stack.append(here)
        m._replace(1)

    def w_popd():
        if not m.dir_stack:
            raise StackError('popd: directory stack empty')
        _chdir('popd', m.dir_stack[-1])
        m.dir_stack.pop()

    m._def('cd',    w_cd,    '( path -- ) Change directory')
    m._def('pushd', w_pushd, '( path -- ) Push current dir and change to path')
    m._def('popd',  w_popd,  '( -- ) Return to the directory saved by pushd')

    # ── Files ─────────────────────────────────────────────────────────────────
    def _write(word, mode):
        def fn():
            m._need(2, word)
            content, filename = m.stack[-2:]
            if not (is_str(content) or is_output(content)) or not is_str(filename):
                raise StackError(f'{word}: requires content and a filename string')
            try:
                with open(expand_user(filename), mode) as f:
                    f.write(as_text(content))
            except OSError as e:
                raise _fault(word, e) from e
            m._replace(2)
        return fn

    m._def('>file',  _write('>file', 'w'),  '( content filename -- ) Write content to file')
    m._def('>>file', _write('>>file', 'a'), '( content filename -- ) Append content to file')
