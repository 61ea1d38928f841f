"""Runtime settings.

Defaults live here as module constants, the environment can override them,
and command line flags override the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigError

# Configuration
LOAD_TIMEOUT_MS = 120_000  # 0 waits forever; PROFILER_CLI_TIMEOUT is in seconds
SETTLE_DELAY = 0.5  # seconds
FOCUS_FUNCTION_DELAY = 5.0
CALLTREE_MARKER_DELAY = 2.0
FLAMEGRAPH_MARKER_DELAY = 5.0
SYMBOL_SERVER = "https://symbolication.services.mozilla.com"
HTTP_TIMEOUT = 30.0

ENV_TIMEOUT = "PROFILER_CLI_TIMEOUT"
ENV_HEADLESS = "PROFILER_CLI_HEADLESS"
ENV_SYMBOL_SERVER = "PROFILER_CLI_SYMBOL_SERVER"
ENV_HTTP_TIMEOUT = "PROFILER_CLI_HTTP_TIMEOUT"

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class Settings:
    load_timeout_ms: int = LOAD_TIMEOUT_MS
    headless: bool = True
    settle_delay: float = SETTLE_DELAY
    focus_function_delay: float = FOCUS_FUNCTION_DELAY
    calltree_marker_delay: float = CALLTREE_MARKER_DELAY
    flamegraph_marker_delay: float = FLAMEGRAPH_MARKER_DELAY
    symbol_server: str = SYMBOL_SERVER
    screenshot: Optional[str] = None
    http_timeout: float = HTTP_TIMEOUT

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        settings = cls()

        if env.get(ENV_TIMEOUT):
            settings.load_timeout_ms = int(_parse_number(ENV_TIMEOUT, env[ENV_TIMEOUT], float) * 1000)
        if env.get(ENV_HEADLESS):
            settings.headless = env[ENV_HEADLESS].strip().lower() not in _FALSE_VALUES
        if env.get(ENV_SYMBOL_SERVER):
            settings.symbol_server = env[ENV_SYMBOL_SERVER].rstrip("/")
        if env.get(ENV_HTTP_TIMEOUT):
            settings.http_timeout = _parse_number(ENV_HTTP_TIMEOUT, env[ENV_HTTP_TIMEOUT], float)

        return settings


def _parse_number(name: str, value: str, kind):
    try:
        parsed = kind(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None
    if not 0 <= parsed < float("inf"):
        raise ConfigError(f"{name} must be a finite non-negative number, got {value!r}")
    return parsed
