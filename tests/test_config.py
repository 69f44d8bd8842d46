from zoneinfo import ZoneInfo

import pytest

from device_usage.config import ConfigError, UsageConfig, config_from_mapping, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "MAX_SESSION_MINUTES", "DEFAULT_WATTAGE", "DEFAULT_UNIT_PRICE",
        "AVG_HOURS_SAVED_PER_AUTO_OFF", "TIMEZONE", "DEVICES_FILE",
    ):
        monkeypatch.delenv(f"DEVICE_USAGE_{name}", raising=False)
    monkeypatch.setattr("device_usage.config.load_dotenv", lambda: None)


def test_defaults():
    config = UsageConfig()
    assert config.max_session_minutes == 4320
    assert config.default_wattage == 60
    assert config.default_unit_price == 7.50
    assert config.avg_hours_saved_per_auto_off == 2.1
    assert config.tzinfo == ZoneInfo("UTC")


def test_mapping_accepts_upper_case_keys():
    config = config_from_mapping(
        {"MAX_SESSION_MINUTES": 1440, "AVG_HOURS_SAVED_PER_EVENT": 1.5, "unrelated": 1}
    )
    assert config.max_session_minutes == 1440
    assert config.avg_hours_saved_per_auto_off == 1.5


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "usage:\n"
        "  default_wattage: 100\n"
        "  timezone: Asia/Kolkata\n"
        "  devices_file: devices.yaml\n"
    )
    config = load_config(path)
    assert config.default_wattage == 100
    assert config.timezone == "Asia/Kolkata"
    assert config.devices_file == "devices.yaml"
    assert config.max_session_minutes == 4320


def test_env_overrides_yaml(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("max_session_minutes: 1440\n")
    monkeypatch.setenv("DEVICE_USAGE_MAX_SESSION_MINUTES", "600")
    monkeypatch.setenv("DEVICE_USAGE_DEFAULT_UNIT_PRICE", "9.25")

    config = load_config(path)
    assert config.max_session_minutes == 600
    assert config.default_unit_price == 9.25


def test_missing_default_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_config() == UsageConfig()


@pytest.mark.parametrize(
    "data,match",
    [
        ({"max_session_minutes": 0}, "must be positive"),
        ({"default_wattage": "lots"}, "Invalid value"),
        ({"default_unit_price": None}, "Invalid value"),
        ({"timezone": "Mars/Olympus"}, "Unknown timezone"),
    ],
)
def test_invalid_values(data, match):
    with pytest.raises(ConfigError, match=match):
        config_from_mapping(data)


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("usage: [unclosed\n")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path)
