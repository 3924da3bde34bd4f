import logging
import os

from counsellor_gateway.core.config import STATIC_DIR, Settings
from counsellor_gateway.core.logging_setup import truncate
from counsellor_gateway.main import create_app


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.upstream_base_url == "http://localhost:5000"
    assert settings.service_port == 3000
    assert settings.shutdown_timeout == 5.0
    assert settings.conversation_id_policy == "upstream"
    assert settings.static_dir == STATIC_DIR


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("UPSTREAM_HOST", "counsellor-api")
    monkeypatch.setenv("UPSTREAM_PORT", "8080")
    monkeypatch.setenv("UPSTREAM_PROTOCOL", "https")
    monkeypatch.setenv("APP_ENV", "production")

    settings = Settings(_env_file=None)

    assert settings.upstream_base_url == "https://counsellor-api:8080"
    assert settings.is_development is False


def test_truncate():
    assert truncate("short") == "short"
    long_text = "a" * 600
    assert truncate(long_text).startswith("a" * 500)
    assert "(600 chars)" in truncate(long_text)


def test_proxy_logs_upstream_target(client, caplog):
    with caplog.at_level(logging.INFO):
        client.post("/send_message", json={"conversation_id": "abc-123"})

    assert "Proxying POST /send_message -> http://upstream.test:5000/send_message" in caplog.text
    assert "API response 200" in caplog.text


def test_create_app_respects_empty_log_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    create_app(Settings(_env_file=None, log_file=""))

    file_handlers = [
        handler
        for handler in logging.getLogger().handlers
        if isinstance(handler, logging.FileHandler) and handler.baseFilename != os.devnull
    ]
    assert file_handlers == []
    assert not (tmp_path / "gateway.log").exists()


def test_importing_main_builds_no_app():
    import counsellor_gateway.main as main_module

    assert not hasattr(main_module, "app")
