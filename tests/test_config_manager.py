import json

import pytest

from cluster_agent.config import DEFAULT_CONFIG, ConfigManager
from cluster_agent.errors import ConfigurationError


def write_config(tmp_path, data):
    path = tmp_path / "agent_config.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return str(path)


def test_defaults():
    config = ConfigManager(environ={})

    assert config.get('server.host') == "127.0.0.1"
    assert config.get('server.port') == 12038
    assert config.get('listener.port') == 12345
    assert config.get('listener.dispatch_layout') == "input-first"
    assert config.get('connection.read_timeout_sec') is None
    assert config.all_config == DEFAULT_CONFIG


def test_missing_key_returns_default():
    config = ConfigManager(environ={})

    assert config.get('server.missing', 'fallback') == 'fallback'
    assert config.get('server.port.deeper') is None


def test_file_values_are_merged_over_defaults(tmp_path):
    path = write_config(tmp_path, {"server": {"host": "coordinator.local"}, "listener": {"port": 23456}})

    config = ConfigManager(config_path=path, environ={})

    assert config.get('server.host') == "coordinator.local"
    assert config.get('server.port') == 12038
    assert config.get('listener.port') == 23456
    assert config.get('listener.backlog') == 30


def test_environment_overrides_file(tmp_path):
    path = write_config(tmp_path, {"server": {"port": 2000}})
    environ = {
        "CLUSTER_AGENT_SERVER_PORT": "3000",
        "CLUSTER_AGENT_READ_TIMEOUT": "2.5",
        "CLUSTER_AGENT_LOG_LEVEL": "",
    }

    config = ConfigManager(config_path=path, environ=environ)

    assert config.get('server.port') == 3000
    assert config.get('connection.read_timeout_sec') == 2.5
    assert config.get('logging.console_level') == "WARNING"


def test_overrides_win_and_none_is_ignored():
    environ = {"CLUSTER_AGENT_SERVER_HOST": "from-env", "CLUSTER_AGENT_LISTEN_PORT": "4000"}

    config = ConfigManager(overrides={'server.host': "from-cli", 'listener.port': None}, environ=environ)

    assert config.get('server.host') == "from-cli"
    assert config.get('listener.port') == 4000


def test_all_config_is_a_copy():
    config = ConfigManager(environ={})

    config.all_config['server']['port'] = 1

    assert config.get('server.port') == 12038


@pytest.mark.parametrize("overrides, message", [
    ({'server.port': 70000}, "server.port"),
    ({'listener.port': -1}, "listener.port"),
    ({'server.port': True}, "server.port"),
    ({'server.host': ""}, "server.host"),
    ({'listener.backlog': -5}, "listener.backlog"),
    ({'listener.dispatch_layout': "command-first"}, "dispatch_layout"),
    ({'connection.read_timeout_sec': 0}, "read_timeout_sec"),
])
def test_invalid_values_are_rejected(overrides, message):
    with pytest.raises(ConfigurationError, match=message):
        ConfigManager(overrides=overrides, environ={})


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        ConfigManager(config_path=str(tmp_path / "nope.json"), environ={})


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_unusable_file_content(tmp_path, content):
    path = write_config(tmp_path, content)

    with pytest.raises(ConfigurationError):
        ConfigManager(config_path=path, environ={})


def test_bad_environment_value():
    with pytest.raises(ConfigurationError, match="CLUSTER_AGENT_SERVER_PORT"):
        ConfigManager(environ={"CLUSTER_AGENT_SERVER_PORT": "twelve"})


@pytest.mark.parametrize("value", [None, 0, -1, "5", True])
def test_invalid_join_timeout(tmp_path, value):
    path = write_config(tmp_path, {"agent": {"shutdown_join_timeout_sec": value}})

    with pytest.raises(ConfigurationError, match="shutdown_join_timeout_sec"):
        ConfigManager(config_path=path, environ={})
