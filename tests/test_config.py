import sys

import pytest

from ndnopp.config import Config
from ndnopp.main import main
from ndnopp.transport.selector import TransportMode


def test_defaults():
    config = Config()
    config.validate()

    assert config.transport.transport_mode == TransportMode.SIZE_THRESHOLD
    assert config.transport.size_threshold == 80
    assert config.manager.purge_on_disable is False
    assert config.manager.pending_timeout is None


def test_missing_file_gives_defaults(tmp_path):
    config = Config.load(tmp_path / "absent.toml")

    assert config.config_path == tmp_path / "absent.toml"
    assert config.transport.mode == "size_threshold"


def test_load_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        'node_id = "abc123"\n'
        'node_name = "phone-a"\n'
        'log_level = "debug"\n'
        "\n"
        "[transport]\n"
        'mode = "backup"\n'
        "size_threshold = 120\n"
        "\n"
        "[manager]\n"
        "purge_on_disable = true\n"
        "pending_timeout = 600\n"
        "maintenance_interval = 5\n"
    )

    config = Config.load(path)
    config.validate()

    assert config.node_id == "abc123"
    assert config.node_name == "phone-a"
    assert config.log_level == "DEBUG"
    assert config.transport.transport_mode == TransportMode.BACKUP
    assert config.transport.size_threshold == 120
    assert config.manager.purge_on_disable is True
    assert config.manager.pending_timeout == 600.0
    assert config.manager.maintenance_interval == 5.0


def test_malformed_file_gives_defaults(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[transport\nmode = ")

    config = Config.load(path)

    assert config.transport.mode == "size_threshold"


def test_zero_timeout_disables_expiry():
    config = Config.from_dict({"manager": {"pending_timeout": 0}})
    assert config.manager.pending_timeout is None


@pytest.mark.parametrize("data", [
    {"transport": {"mode": "smoke-signals"}},
    {"transport": {"size_threshold": -1}},
    {"manager": {"pending_timeout": -5}},
    {"manager": {"maintenance_interval": 0}},
    {"log_level": "chatty"},
])
def test_validate_rejects(data):
    with pytest.raises(ValueError):
        Config.from_dict(data).validate()


def test_daemon_reports_bad_values_as_configuration_error(tmp_path, monkeypatch, capsys):
    path = tmp_path / "config.toml"
    path.write_text('[transport]\nsize_threshold = "abc"\n')
    monkeypatch.setattr(sys, "argv", ["ndnoppd", "-c", str(path)])

    with pytest.raises(SystemExit) as exc:
        main()

    assert exc.value.code == 1
    assert "Configuration error" in capsys.readouterr().err
