"""Exceptions raised while extracting data from a profiler page."""


class ProfilerError(Exception):
    """Base class for everything the CLI reports as a failed run."""


class ConfigError(ProfilerError):
    pass


class ProfileLoadError(ProfilerError):
    """The profile page never reached a loaded, symbolicated state."""


class PageScriptError(ProfilerError):
    """An in-page script failed or returned something unexpected."""


class FunctionNotFoundError(ProfilerError):
    def __init__(self, function_name: str):
        super().__init__(f'Function "{function_name}" not found in function table')
        self.function_name = function_name


class SymbolServerError(ProfilerError):
    """A disassembly or source request could not be served."""
