import logging
from pathlib import Path

import pytest

from power_guard import __version__
from power_guard import main as main_module
from power_guard.errors import ConfigError
from power_guard.logging_setup import parse_log_level, setup_logging
from power_guard.settings import LoggingSettings, Settings

FULL_CONFIG = """
ups:
  host: nas.local
  name: rack
  port: 3493
  username: monuser
  password: secret
monitoring:
  poll_interval: 10
shutdown:
  enabled: true
  on_battery_seconds: 600
  battery_percent_threshold: 25.5
  runtime_threshold: 240
  shutdown_command: /usr/bin/systemctl poweroff
  shutdown_grace_period: 15
logging:
  log_level: debug
metrics:
  enabled: true
  port: 9100
  bearer_token: s3cret
  format: json
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    import os

    for key in list(os.environ):
        if key.startswith("POWER_GUARD_"):
            monkeypatch.delenv(key)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_from_file_reads_every_section(tmp_path):
    settings = Settings.from_file(_write(tmp_path, FULL_CONFIG))

    assert settings.ups.host == "nas.local"
    assert settings.ups.username == "monuser"
    assert settings.monitoring.poll_interval == 10
    assert settings.shutdown.enabled is True
    assert settings.shutdown.battery_percent_threshold == 25.5
    assert settings.shutdown.shutdown_command == "/usr/bin/systemctl poweroff"
    assert settings.logging.log_level == "debug"
    assert settings.metrics.port == 9100
    assert settings.metrics.format == "json"


def test_defaults_for_missing_sections(tmp_path):
    settings = Settings.from_file(_write(tmp_path, "ups:\n  host: 10.0.0.2\n"))

    assert settings.ups.port == 3493
    assert settings.ups.name == "ups"
    assert settings.monitoring.poll_interval == 5
    assert settings.shutdown.enabled is False
    assert settings.shutdown.on_battery_seconds == 300
    assert settings.shutdown.runtime_threshold == 180
    assert settings.shutdown.shutdown_grace_period == 30
    assert settings.metrics.enabled is False
    assert settings.metrics.port == 8089
    assert settings.metrics.format == "openmetrics"


def test_env_fills_values_missing_from_file(tmp_path, monkeypatch):
    monkeypatch.setenv("POWER_GUARD_METRICS__BEARER_TOKEN", "from-env")
    settings = Settings.from_file(_write(tmp_path, "metrics:\n  enabled: true\n"))
    assert settings.metrics.enabled is True
    assert settings.metrics.bearer_token == "from-env"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        Settings.from_file(tmp_path / "nope.yaml")


def test_invalid_values(tmp_path):
    with pytest.raises(ConfigError, match="poll_interval"):
        Settings.from_file(_write(tmp_path, "monitoring:\n  poll_interval: 0\n"))


def test_non_mapping_config(tmp_path):
    with pytest.raises(ConfigError):
        Settings.from_file(_write(tmp_path, "- just\n- a list\n"))


@pytest.mark.parametrize(
    "name,level",
    [
        ("trace", logging.DEBUG),
        ("DEBUG", logging.DEBUG),
        ("info", logging.INFO),
        ("warn", logging.WARNING),
        ("warning", logging.WARNING),
        ("error", logging.ERROR),
        ("off", logging.CRITICAL + 1),
    ],
)
def test_parse_log_level(name, level):
    assert parse_log_level(name) == level


def test_unknown_log_level_defaults_to_info(capsys):
    assert parse_log_level("chatty") == logging.INFO
    assert "Unknown log level 'chatty'" in capsys.readouterr().err


def test_setup_logging_creates_log_file(tmp_path):
    log_file = tmp_path / "logs" / "nested" / "power-guard.log"
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        setup_logging(LoggingSettings(log_file=str(log_file), log_level="info"))
        logging.getLogger("power-guard.test").info("hello file")
        for handler in root.handlers:
            handler.flush()
        assert log_file.exists()
        assert "[INFO] hello file" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])
        logging.getLogger("power-guard").setLevel(logging.NOTSET)


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["--version"])
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == f"power-guard v{__version__}"


def test_short_version_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["-v"])
    assert excinfo.value.code == 0


def test_missing_config_exits_nonzero(tmp_path, capsys):
    assert main_module.main([str(tmp_path / "missing.yaml")]) == 1
    assert "Config file not found" in capsys.readouterr().err


def test_main_runs_monitor_without_metrics(tmp_path, monkeypatch):
    ran = []

    class FakeMonitor:
        def __init__(self, settings, store=None):
            ran.append((settings.ups.host, store))

        def run(self):
            ran.append("run")

    monkeypatch.setattr(main_module, "UpsMonitor", FakeMonitor)
    monkeypatch.setattr(main_module, "setup_logging", lambda cfg: None)

    assert main_module.main([str(_write(tmp_path, "ups:\n  host: nas.local\n"))]) == 0
    assert ran == [("nas.local", None), "run"]


def test_main_exits_when_metrics_listener_fails(tmp_path, monkeypatch):
    from power_guard.errors import MetricsServerError

    class FailingServer:
        def __init__(self, store, cfg):
            pass

        def start(self):
            raise MetricsServerError("Failed to bind metrics server to 0.0.0.0:9100")

    monkeypatch.setattr(main_module, "MetricsServer", FailingServer)
    monkeypatch.setattr(main_module, "setup_logging", lambda cfg: None)
    monkeypatch.setattr(main_module, "UpsMonitor", lambda *a, **k: pytest.fail("monitor must not start"))

    config = _write(tmp_path, "metrics:\n  enabled: true\n  port: 9100\n")
    assert main_module.main([str(config)]) == 1
