"""Tests for config/settings.py — environment loading."""

import pytest

from config import Settings
from config.settings import DEFAULT_TEMPLATE_PATH, MIN_POLL_SECONDS

_ENV_VARS = [
    "IMAP_HOST", "IMAP_PORT", "IMAP_SECURE", "IMAP_USER", "IMAP_PASS", "MAILBOX",
    "SMTP_HOST", "SMTP_PORT", "SMTP_SECURE", "SMTP_USER", "SMTP_PASS", "MAIL_TO",
    "TEMPLATE_URL", "TEMPLATE_PATH", "ASSETS_BASE_URL", "INLINE_CSS", "CSS_URL",
    "AI_PROVIDER", "AI_MODEL", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "AI_MAX_TOKENS",
    "AI_ASCII_ONLY", "REPORT_LINK_HOST", "POLL_SECONDS", "PORT", "OUTPUT_DIR",
    "REQUEST_TIMEOUT", "NO_EMAIL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env()

    assert settings.imap.host == "imap.gmail.com"
    assert settings.imap.port == 993
    assert settings.imap.secure is True
    assert settings.smtp.port == 465
    assert settings.template.template_path == DEFAULT_TEMPLATE_PATH
    assert settings.template.css_url == ""
    assert settings.analyzer.provider == "openai"
    assert settings.analyzer.model_name == "gpt-4o-mini"
    assert settings.poll_interval == 120
    assert settings.health_port == 10000
    assert settings.output_dir == "out"
    assert settings.send_email is True


def test_poll_interval_floor(clean_env):
    clean_env.setenv("POLL_SECONDS", "10")
    settings = Settings.from_env()
    assert settings.poll_seconds == 10
    assert settings.poll_interval == MIN_POLL_SECONDS


def test_booleans_and_ints(clean_env):
    clean_env.setenv("SMTP_SECURE", "false")
    clean_env.setenv("SMTP_PORT", "587")
    clean_env.setenv("IMAP_SECURE", "FALSE")
    clean_env.setenv("INLINE_CSS", "false")
    clean_env.setenv("NO_EMAIL", "true")

    settings = Settings.from_env()
    assert settings.smtp.secure is False
    assert settings.smtp.port == 587
    assert settings.imap.secure is False
    assert settings.template.inline_css is False
    assert settings.send_email is False


def test_recipient_defaults_to_smtp_user(clean_env):
    clean_env.setenv("SMTP_USER", "atelier@gmail.com")
    assert Settings.from_env().smtp.recipient == "atelier@gmail.com"

    clean_env.setenv("MAIL_TO", "client@example.com")
    assert Settings.from_env().smtp.recipient == "client@example.com"


def test_css_url_derived_from_assets_base(clean_env):
    clean_env.setenv("ASSETS_BASE_URL", "https://cdn.example.com/")
    template = Settings.from_env().template
    assert template.assets_base_url == "https://cdn.example.com"
    assert template.css_url == "https://cdn.example.com/assets/css/style.css"


def test_anthropic_provider(clean_env):
    clean_env.setenv("AI_PROVIDER", "Anthropic")
    clean_env.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    clean_env.setenv("OPENAI_API_KEY", "sk-openai-test")

    analyzer = Settings.from_env().analyzer
    assert analyzer.provider == "anthropic"
    assert analyzer.api_key == "sk-ant-test"
    assert analyzer.model_name.startswith("claude")


def test_explicit_model(clean_env):
    clean_env.setenv("AI_MODEL", "gpt-4.1")
    assert Settings.from_env().analyzer.model_name == "gpt-4.1"
