import os
import sys

import pytest

# Make sure project root is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from profiler_cli.config import Settings


class FakePage:
    """Stands in for a playwright Page; ``results`` maps script source -> value or callable(arg)."""

    def __init__(self, results=None, url="https://profiler.firefox.com/public/abc/calltree/"):
        self.results = results or {}
        self.url = url
        self.calls = []
        self.closed = False
        self.screenshots = []
        self.timeout = None
        self.fail_on = None

    def set_default_timeout(self, timeout):
        self.timeout = timeout

    def goto(self, url):
        self.calls.append(("goto", url))

    def wait_for_function(self, script):
        self.calls.append(("wait", script))
        if self.fail_on is not None and self.fail_on == script:
            from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

            raise PlaywrightTimeoutError("Timeout 10ms exceeded.")

    def evaluate(self, script, arg=None):
        self.calls.append(("evaluate", script, arg))
        result = self.results.get(script, {})
        if callable(result):
            return result(arg)
        return result

    def screenshot(self, path, full_page=False):
        self.screenshots.append((path, full_page))

    def close(self):
        self.closed = True

    def evaluated(self, script):
        return [c[2] for c in self.calls if c[0] == "evaluate" and c[1] == script]


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.page_kwargs = None

    def new_page(self, **kwargs):
        self.page_kwargs = kwargs
        return self.page


@pytest.fixture
def settings():
    """Settings with every delay removed."""
    return Settings(settle_delay=0, focus_function_delay=0, calltree_marker_delay=0, flamegraph_marker_delay=0)


@pytest.fixture
def make_browser():
    def make(results=None, **kwargs):
        page = FakePage(results, **kwargs)
        return FakeBrowser(page), page

    return make
