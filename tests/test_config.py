from pathlib import Path

import pytest

from aicc_common.config import DEFAULT_ENCODING, ConfigError, load_settings


def test_defaults_without_file_or_env():
    settings = load_settings()

    assert settings.strict_root is False
    assert settings.encoding == DEFAULT_ENCODING
    assert settings.log_level == "INFO"
    assert settings.column_aliases == {}


def test_yaml_file_supplies_options_and_aliases(tmp_path: Path):
    config = tmp_path / "aicc.yaml"
    config.write_text(
        "strict_root: yes\n"
        "log_level: debug\n"
        "column_aliases:\n"
        "  au:\n"
        "    file_name: Launch_File\n"
        "  cst:\n"
        "    attributes: [AU_Props, Props]\n",
        encoding="utf-8",
    )

    settings = load_settings(config)

    assert settings.strict_root is True
    assert settings.log_level == "DEBUG"
    assert settings.column_aliases == {
        "au": {"file_name": ["Launch_File"]},
        "cst": {"attributes": ["AU_Props", "Props"]},
    }


def test_environment_overrides_file(tmp_path: Path, monkeypatch):
    config = tmp_path / "aicc.yaml"
    config.write_text("strict_root: true\nencoding: utf8\n", encoding="utf-8")
    monkeypatch.setenv("AICC_CONFIG", str(config))
    monkeypatch.setenv("AICC_STRICT_ROOT", "0")
    monkeypatch.setenv("AICC_LOG_LEVEL", "warning")

    settings = load_settings()

    assert settings.strict_root is False
    assert settings.encoding == "utf8"
    assert settings.log_level == "WARNING"


@pytest.mark.parametrize(
    "content",
    [
        "strict_root: [unclosed\n",
        "- just\n- a list\n",
        "column_aliases:\n  au: not-a-mapping\n",
        "column_aliases:\n  au:\n    file_name: {nested: true}\n",
    ],
)
def test_invalid_config_raises(tmp_path: Path, content: str):
    config = tmp_path / "bad.yaml"
    config.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(config)


def test_missing_config_file_raises(tmp_path: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_settings(tmp_path / "absent.yaml")
