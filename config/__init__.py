from .settings import (
    AnalyzerConfig,
    ImapConfig,
    Settings,
    SmtpConfig,
    TemplateConfig,
)

__all__ = [
    "AnalyzerConfig",
    "ImapConfig",
    "Settings",
    "SmtpConfig",
    "TemplateConfig",
]
