"""Paths, version and logging setup."""

import logging
import os
from pathlib import Path

VERSION = '0.4.0'

HISTORY_LENGTH = 1000

LOG_FORMAT = '%(levelname)s %(name)s: %(message)s'


def _home_file(env_var: str, name: str) -> Path | None:
    override = os.environ.get(env_var)
    if override:
        return Path(override).expanduser()
    home = os.environ.get('HOME')
    if not home:
        return None
    return Path(home) / name


def rc_path() -> Path | None:
    """Startup file: $RPNSH_RC, else ~/.rpnshrc."""
    return _home_file('RPNSH_RC', '.rpnshrc')


def history_path() -> Path | None:
    """History file: $RPNSH_HISTORY, else ~/.rpnsh_history."""
    return _home_file('RPNSH_HISTORY', '.rpnsh_history')


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )
