import pytest

from profiler_cli import browser, page_scripts
from profiler_cli.browser import apply_transforms, evaluate, open_profile, prepare_call_tree
from profiler_cli.errors import PageScriptError, ProfileLoadError


def test_open_profile_waits_for_load_then_symbolication(make_browser, settings):
    fake_browser, page = make_browser()

    with open_profile(fake_browser, "https://share.firefox.dev/abc", settings) as opened:
        assert opened is page
        assert not page.closed

    assert fake_browser.page_kwargs == {"bypass_csp": True}
    assert page.timeout == settings.load_timeout_ms
    assert page.calls == [
        ("goto", "https://share.firefox.dev/abc"),
        ("wait", page_scripts.PROFILE_LOADED),
        ("wait", page_scripts.SYMBOLICATION_DONE),
    ]
    assert page.closed


def test_open_profile_closes_page_on_error(make_browser, settings):
    fake_browser, page = make_browser()

    with pytest.raises(RuntimeError):
        with open_profile(fake_browser, "https://share.firefox.dev/abc", settings):
            raise RuntimeError("boom")

    assert page.closed


def test_open_profile_timeout_becomes_load_error(make_browser, settings):
    fake_browser, page = make_browser()
    page.fail_on = page_scripts.SYMBOLICATION_DONE

    with pytest.raises(ProfileLoadError, match="Failed to load profile"):
        with open_profile(fake_browser, "https://share.firefox.dev/abc", settings):
            pass

    assert page.closed


def test_open_profile_takes_screenshot(make_browser, settings):
    fake_browser, page = make_browser()
    settings.screenshot = "/tmp/profile.png"

    with open_profile(fake_browser, "https://share.firefox.dev/abc", settings):
        pass

    assert page.screenshots == [("/tmp/profile.png", True)]


def test_evaluate_rejects_non_object(make_browser):
    _, page = make_browser({page_scripts.MARKERS: "[]"})

    with pytest.raises(PageScriptError, match="Did not get back an object"):
        evaluate(page, page_scripts.MARKERS)


def test_prepare_call_tree_dispatches_invert(make_browser, settings):
    _, page = make_browser()

    prepare_call_tree(page, inverted=True, settings=settings)

    assert page.evaluated(page_scripts.PREPARE_CALL_TREE) == [{"inverted": True}]


def test_apply_transforms_missing_function_still_filters_markers(make_browser, settings, monkeypatch):
    sleeps = []
    monkeypatch.setattr(browser.time, "sleep", sleeps.append)
    _, page = make_browser({page_scripts.FOCUS_FUNCTION: {"error": 'Function "nope" not found in function table'}})
    settings.focus_function_delay = 5
    settings.settle_delay = 0.5

    apply_transforms(page, "nope", "Jank", marker_delay=2, settings=settings)

    assert page.evaluated(page_scripts.FOCUS_FUNCTION) == [{"functionName": "nope"}]
    assert page.evaluated(page_scripts.FILTER_BY_MARKER) == [{"search": "Jank"}]
    assert sleeps == [5, 2]


def test_apply_transforms_without_filters_just_settles(make_browser, settings, monkeypatch):
    sleeps = []
    monkeypatch.setattr(browser.time, "sleep", sleeps.append)
    _, page = make_browser()
    settings.settle_delay = 0.5

    apply_transforms(page, None, None, marker_delay=2, settings=settings)

    assert [c for c in page.calls if c[0] == "evaluate"] == []
    assert sleeps == [0.5]


def test_apply_transforms_warns_about_missing_function(make_browser, settings, capsys):
    _, page = make_browser({page_scripts.FOCUS_FUNCTION: {"error": 'Function "nope" not found in function table'}})

    apply_transforms(page, "nope", None, marker_delay=0, settings=settings)

    err = capsys.readouterr().err
    assert '[WARN] Warning: Function "nope" not found in function table' in err
