"""Page control for the Firefox Profiler web app.

Every extraction follows the same shape: open the share URL, wait for the
profile to load and symbolicate, dispatch a UI action or two, give the app a
moment to recompute, then read its state back with ``evaluate``.
"""

import time
from contextlib import contextmanager
from typing import Optional

from playwright.sync_api import Browser, Page
from playwright.sync_api import Error as PlaywrightError

from . import page_scripts
from .config import Settings
from .errors import PageScriptError, ProfileLoadError
from .log import log, status


@contextmanager
def open_profile(browser: Browser, url: str, settings: Settings):
    """Open ``url`` and yield the page once the profile is loaded and symbolicated."""
    page = browser.new_page(bypass_csp=True)
    try:
        page.set_default_timeout(settings.load_timeout_ms)
        with status(f"Loading profile {url}"):
            try:
                page.goto(url)
                page.wait_for_function(page_scripts.PROFILE_LOADED)
                log("Profile data loaded, waiting for symbolication", level="DEBUG")
                page.wait_for_function(page_scripts.SYMBOLICATION_DONE)
            except PlaywrightError as e:
                raise ProfileLoadError(f"Failed to load profile from {url}: {e}") from e

        log(f"Final URL: {page.url}", level="DEBUG")

        if settings.screenshot:
            page.screenshot(path=settings.screenshot, full_page=True)
            log(f"Screenshot saved to {settings.screenshot}")

        yield page
    finally:
        page.close()


def evaluate(page: Page, script: str, arg=None) -> dict:
    """Run an in-page script and check that it handed back an object."""
    try:
        result = page.evaluate(script, arg)
    except PlaywrightError as e:
        raise PageScriptError(f"In-page script failed: {e}") from e
    if not isinstance(result, dict):
        raise PageScriptError("Did not get back an object")
    return result


def prepare_call_tree(page: Page, inverted: bool, settings: Settings):
    evaluate(page, page_scripts.PREPARE_CALL_TREE, {"inverted": inverted})
    time.sleep(settings.settle_delay)


def focus_function(page: Page, function_name: str) -> dict:
    """Push a focus-function transform for the first function named exactly ``function_name``."""
    return evaluate(page, page_scripts.FOCUS_FUNCTION, {"functionName": function_name})


def filter_by_marker(page: Page, search: str) -> dict:
    """Keep only samples that fall inside markers matching ``search``."""
    return evaluate(page, page_scripts.FILTER_BY_MARKER, {"search": search})


def apply_transforms(
    page: Page,
    function_name: Optional[str],
    marker_search: Optional[str],
    marker_delay: float,
    settings: Settings,
):
    if function_name is not None:
        debug_info = focus_function(page, function_name)
        if debug_info.get("error"):
            log(f"Warning: {debug_info['error']}", level="WARN")
        else:
            log(
                f"Focused on {function_name} (func {debug_info.get('funcIndex')}, "
                f"{debug_info.get('rootNodeCount', 0)} roots)",
                level="DEBUG",
            )
        time.sleep(settings.focus_function_delay)

    if marker_search is not None:
        filter_by_marker(page, marker_search)
        time.sleep(marker_delay)

    if function_name is None and marker_search is None:
        time.sleep(settings.settle_delay)
