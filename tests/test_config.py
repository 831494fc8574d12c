"""Tests for the config system."""

from sage_plugin.core.config import HostConfig, PluginConfig, SageConfig, ServerConfig


def test_sage_defaults():
    cfg = SageConfig()
    assert cfg.bin == "sage"
    assert cfg.suggest_limit == 3
    assert cfg.debounce_ms == 800
    assert cfg.provision is True
    assert cfg.dry_run is False
    assert cfg.feedback_enabled is True
    assert cfg.correlation_window_seconds == 30.0
    assert cfg.source == "opencode"
    assert cfg.feedback_source == "opencode-plugin"


def test_sage_from_env(monkeypatch):
    monkeypatch.setenv("SAGE_BIN", "/opt/sage")
    monkeypatch.setenv("SAGE_SUGGEST_LIMIT", "5")
    monkeypatch.setenv("SAGE_SUGGEST_DEBOUNCE_MS", "250")
    monkeypatch.setenv("SAGE_CORRELATION_WINDOW_MS", "1000")
    cfg = SageConfig.from_env()
    assert cfg.bin == "/opt/sage"
    assert cfg.suggest_limit == 5
    assert cfg.debounce_seconds == 0.25
    assert cfg.correlation_window_seconds == 1.0


def test_flags_only_enabled_by_one(monkeypatch):
    monkeypatch.setenv("SAGE_PLUGIN_DRY_RUN", "true")
    monkeypatch.setenv("SAGE_SUGGEST_PROVISION", "0")
    monkeypatch.setenv("SAGE_RLM_FEEDBACK", "1")
    cfg = SageConfig.from_env()
    assert cfg.dry_run is False
    assert cfg.provision is False
    assert cfg.feedback_enabled is True


def test_bad_numbers_fall_back(monkeypatch):
    monkeypatch.setenv("SAGE_SUGGEST_LIMIT", "lots")
    monkeypatch.setenv("SAGE_HOST_TIMEOUT", "soon")
    assert SageConfig.from_env().suggest_limit == 3
    assert HostConfig.from_env().timeout == 5.0


def test_negative_debounce_clamped():
    assert SageConfig(debounce_ms=-10).debounce_seconds == 0.0


def test_host_from_env(monkeypatch):
    monkeypatch.setenv("OPENCODE_SERVER_URL", "http://localhost:9999")
    monkeypatch.setenv("SAGE_WORKSPACE", "/work")
    cfg = HostConfig.from_env()
    assert cfg.url == "http://localhost:9999"
    assert cfg.directory == "/work"


def test_workspace_defaults_to_cwd(monkeypatch, tmp_path):
    monkeypatch.delenv("SAGE_WORKSPACE", raising=False)
    monkeypatch.chdir(tmp_path)
    assert HostConfig.from_env().directory == str(tmp_path)


def test_server_and_root(monkeypatch):
    monkeypatch.setenv("SAGE_PLUGIN_PORT", "5000")
    assert ServerConfig.from_env().port == 5000
    cfg = PluginConfig.from_env()
    assert cfg.server.port == 5000
    assert cfg.sage.bin
