"""
Configuration settings for the TOPDON diagnostic report agent.
Loads from environment variables with sensible defaults.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

MIN_POLL_SECONDS = 60

DEFAULT_TEMPLATE_PATH = str(
    Path(__file__).parent.parent / "autodiag" / "templates" / "Raport-Diagnoza-Auto.html"
)


def _env_flag(name: str) -> bool:
    """On unless explicitly set to 'false'."""
    return os.getenv(name, "true").strip().lower() != "false"


@dataclass
class ImapConfig:
    """Mailbox the vendor reports arrive in."""
    host: str = "imap.gmail.com"
    port: int = 993
    secure: bool = True
    user: str = ""
    password: str = ""
    mailbox: str = "INBOX"


@dataclass
class SmtpConfig:
    """Outgoing mail for the rendered report."""
    host: str = "smtp.gmail.com"
    port: int = 465
    secure: bool = True  # SMTP_SSL when true, STARTTLS otherwise
    user: str = ""
    password: str = ""
    recipient: str = ""
    subject: str = "Raport Diagnoza Auto (HTML)"


@dataclass
class TemplateConfig:
    """Where the report template and its assets come from."""
    template_url: str = ""
    template_path: str = DEFAULT_TEMPLATE_PATH
    assets_base_url: str = ""  # no trailing slash
    inline_css: bool = True
    css_url: str = ""


@dataclass
class AnalyzerConfig:
    """Reasoning service selection."""
    provider: str = "openai"  # 'openai' or 'anthropic'
    model: Optional[str] = None
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    max_tokens: int = 4000
    ascii_only: bool = True

    @property
    def api_key(self) -> str:
        if self.provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key

    @property
    def model_name(self) -> str:
        if self.model:
            return self.model
        return "claude-haiku-4-5-20251001" if self.provider == "anthropic" else "gpt-4o-mini"


@dataclass
class Settings:
    """Main application settings."""
    imap: ImapConfig = field(default_factory=ImapConfig)
    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    template: TemplateConfig = field(default_factory=TemplateConfig)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)

    # Vendor mail
    link_host_hint: str = "topdon"

    # Runtime
    poll_seconds: int = 120
    health_port: int = 10000
    output_dir: str = "out"
    request_timeout: int = 30
    send_email: bool = True

    @property
    def poll_interval(self) -> int:
        """Seconds between inbox polls, never below the floor."""
        return max(MIN_POLL_SECONDS, self.poll_seconds)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        smtp_user = os.getenv("SMTP_USER", "")

        imap = ImapConfig(
            host=os.getenv("IMAP_HOST", "imap.gmail.com"),
            port=int(os.getenv("IMAP_PORT", 993)),
            secure=_env_flag("IMAP_SECURE"),
            user=os.getenv("IMAP_USER", ""),
            password=os.getenv("IMAP_PASS", ""),
            mailbox=os.getenv("MAILBOX", "INBOX"),
        )

        smtp = SmtpConfig(
            host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            port=int(os.getenv("SMTP_PORT", 465)),
            secure=_env_flag("SMTP_SECURE"),
            user=smtp_user,
            password=os.getenv("SMTP_PASS", ""),
            recipient=(os.getenv("MAIL_TO") or smtp_user).strip(),
        )

        assets_base = os.getenv("ASSETS_BASE_URL", "").rstrip("/")
        template = TemplateConfig(
            template_url=os.getenv("TEMPLATE_URL", ""),
            template_path=os.getenv("TEMPLATE_PATH") or DEFAULT_TEMPLATE_PATH,
            assets_base_url=assets_base,
            inline_css=_env_flag("INLINE_CSS"),
            css_url=os.getenv("CSS_URL") or (f"{assets_base}/assets/css/style.css" if assets_base else ""),
        )

        analyzer = AnalyzerConfig(
            provider=os.getenv("AI_PROVIDER", "openai").strip().lower(),
            model=os.getenv("AI_MODEL") or None,
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            max_tokens=int(os.getenv("AI_MAX_TOKENS", 4000)),
            ascii_only=_env_flag("AI_ASCII_ONLY"),
        )

        return cls(
            imap=imap,
            smtp=smtp,
            template=template,
            analyzer=analyzer,
            link_host_hint=os.getenv("REPORT_LINK_HOST", "topdon"),
            poll_seconds=int(os.getenv("POLL_SECONDS") or 120),
            health_port=int(os.getenv("PORT", 10000)),
            output_dir=os.getenv("OUTPUT_DIR", "out"),
            request_timeout=int(os.getenv("REQUEST_TIMEOUT", 30)),
            send_email=os.getenv("NO_EMAIL", "").lower() != "true",
        )
