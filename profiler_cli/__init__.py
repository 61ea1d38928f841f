"""Extract call trees, markers, page-load and network timing from Firefox Profiler profiles."""

__version__ = "0.1.0"
