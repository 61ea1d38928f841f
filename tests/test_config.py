import pytest

from profiler_cli.config import LOAD_TIMEOUT_MS, SYMBOL_SERVER, Settings
from profiler_cli.errors import ConfigError
from profiler_cli.models import CallPath, CallTreeNode, JankPeriod


def test_defaults_without_env():
    settings = Settings.from_env({})

    assert settings.load_timeout_ms == LOAD_TIMEOUT_MS
    assert settings.headless is True
    assert settings.symbol_server == SYMBOL_SERVER


def test_env_overrides():
    settings = Settings.from_env(
        {
            "PROFILER_CLI_TIMEOUT": "0",
            "PROFILER_CLI_HEADLESS": "false",
            "PROFILER_CLI_SYMBOL_SERVER": "http://127.0.0.1:3000/",
            "PROFILER_CLI_HTTP_TIMEOUT": "2.5",
        }
    )

    assert settings.load_timeout_ms == 0
    assert settings.headless is False
    assert settings.symbol_server == "http://127.0.0.1:3000"
    assert settings.http_timeout == 2.5


@pytest.mark.parametrize("value", ["soon", "-5", "inf"])
def test_bad_timeout(value):
    with pytest.raises(ConfigError, match="PROFILER_CLI_TIMEOUT"):
        Settings.from_env({"PROFILER_CLI_TIMEOUT": value})


def test_timeout_env_is_in_seconds():
    assert Settings.from_env({"PROFILER_CLI_TIMEOUT": "120"}).load_timeout_ms == 120_000
    assert Settings.from_env({"PROFILER_CLI_TIMEOUT": "2.5"}).load_timeout_ms == 2500


def test_bad_http_timeout():
    with pytest.raises(ConfigError, match="PROFILER_CLI_HTTP_TIMEOUT"):
        Settings.from_env({"PROFILER_CLI_HTTP_TIMEOUT": "fast"})


def test_models_serialize_camel_case():
    node = CallTreeNode("malloc", 3, 4, ["malloc"], [CallPath(["malloc", "main"], 3)])
    jank = JankPeriod(1.0, 2.0, [("f", 3)], {"JavaScript": 3})

    assert node.to_dict() == {
        "name": "malloc",
        "selfTime": 3,
        "totalTime": 4,
        "stack": ["malloc"],
        "callPaths": [{"stack": ["malloc", "main"], "samples": 3}],
    }
    assert jank.to_dict()["topFunctions"] == [{"name": "f", "samples": 3}]
