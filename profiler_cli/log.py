"""Diagnostics on stderr; stdout is reserved for the report itself."""

from contextlib import contextmanager
from datetime import datetime

from rich.console import Console

console = Console(stderr=True, highlight=False)

_LEVEL_STYLES = {
    "DEBUG": "dim",
    "INFO": "cyan",
    "WARN": "yellow",
    "ERROR": "red bold",
}

_verbose = False


def set_verbose(enabled: bool):
    global _verbose
    _verbose = enabled


def log(msg: str, level: str = "INFO"):
    """Print a timestamped log message."""
    if level == "DEBUG" and not _verbose:
        return
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    style = _LEVEL_STYLES.get(level, "")
    console.print(f"[{timestamp}] [{level}] {msg}", style=style, markup=False, soft_wrap=True)


@contextmanager
def status(msg: str):
    """Show a spinner while a slow step (page load, symbolication) runs."""
    if not console.is_terminal:
        log(msg)
        yield
        return
    with console.status(msg):
        yield
