from pathlib import Path

import pytest

from i18n_native_host import config as config_module
from i18n_native_host.config import ConfigError, HostConfig, load_config


@pytest.fixture(autouse=True)
def isolate_config(tmp_path, monkeypatch):
    """No user config file, no host env vars."""
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml")
    for name in (
        "I18N_HOST_CONFIG",
        "I18N_HOST_NAMESPACES",
        "I18N_HOST_INDENT",
        "I18N_HOST_MAX_MESSAGE_BYTES",
        "I18N_HOST_LOG_LEVEL",
        "I18N_HOST_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
def test_defaults_without_file():
    config = load_config()
    assert config.namespaces == ["reviewed", "old"]
    assert config.indent == 4
    assert config.max_message_bytes == 64 * 1024 * 1024
    assert config.log_level == "info"
    assert config.log_file is None
    assert config.source is None


@pytest.mark.unit
def test_yaml_file_values(tmp_path: Path):
    path = tmp_path / "host.yaml"
    path.write_text(
        "namespaces:\n  - reviewed\n  - legacy.json\n  - reviewed\nindent: 2\nlog_level: DEBUG\n",
        encoding="utf-8",
    )
    config = load_config(str(path))
    assert config.namespaces == ["reviewed", "legacy"]
    assert config.indent == 2
    assert config.log_level == "debug"
    assert config.source == str(path)


@pytest.mark.unit
def test_config_path_from_env(tmp_path: Path, monkeypatch):
    path = tmp_path / "env.yaml"
    path.write_text("namespaces: [only]\n", encoding="utf-8")
    monkeypatch.setenv("I18N_HOST_CONFIG", str(path))
    assert load_config().namespaces == ["only"]


@pytest.mark.unit
def test_empty_yaml_means_defaults(tmp_path: Path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)).namespaces == ["reviewed", "old"]


@pytest.mark.unit
def test_env_overrides(monkeypatch):
    monkeypatch.setenv("I18N_HOST_NAMESPACES", "old, reviewed")
    monkeypatch.setenv("I18N_HOST_INDENT", "2")
    monkeypatch.setenv("I18N_HOST_LOG_LEVEL", "warning")
    config = load_config()
    assert config.namespaces == ["old", "reviewed"]
    assert config.indent == 2
    assert config.log_level == "warning"


@pytest.mark.unit
def test_invalid_env_values_fall_back(monkeypatch):
    monkeypatch.setenv("I18N_HOST_INDENT", "wide")
    monkeypatch.setenv("I18N_HOST_MAX_MESSAGE_BYTES", "1")
    monkeypatch.setenv("I18N_HOST_NAMESPACES", "../etc")
    config = load_config()
    assert config.indent == 4
    assert config.max_message_bytes == 64 * 1024 * 1024
    assert config.namespaces == ["reviewed", "old"]


@pytest.mark.unit
def test_missing_explicit_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "nope.yaml"))


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "namespaces: []\n",
        "namespaces: 5\n",
        "indent: -1\n",
        "namespaces: [ok\n",
    ],
)
def test_invalid_files(tmp_path: Path, content: str):
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


@pytest.mark.unit
def test_from_dict_rejects_path_like_namespace():
    with pytest.raises(ConfigError):
        HostConfig.from_dict({"namespaces": ["sub/dir"]})


@pytest.mark.unit
def test_blank_namespace_env_keeps_configured_order(tmp_path: Path, monkeypatch):
    path = tmp_path / "host.yaml"
    path.write_text("namespaces: [old, reviewed]\n", encoding="utf-8")
    monkeypatch.setenv("I18N_HOST_NAMESPACES", " , ")
    monkeypatch.setenv("I18N_HOST_MAX_MESSAGE_BYTES", "2048")
    config = load_config(str(path))
    assert config.namespaces == ["old", "reviewed"]
    assert config.max_message_bytes == 2048
