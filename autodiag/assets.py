"""
Post-processing of the rendered report.

The template references its stylesheet and images relative to ``assets/``.
For the saved file those links are made absolute; for the e-mail body the
stylesheet is inlined and scripts are dropped (mail clients ignore them).
"""
import re
from typing import Optional

_ASSET_REF_RE = re.compile(r"(src|href)=([\"'])(?:\./)?assets/", re.IGNORECASE)
_STYLESHEET_LINK_RE = re.compile(
    r"<link[^>]+href=[\"'][^\"']*assets/css/style\.css[\"'][^>]*>", re.IGNORECASE
)
_SCRIPT_RE = re.compile(r"<script\b[\s\S]*?</script\s*>", re.IGNORECASE)
_UNSAFE_FILE_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")

NO_VIN_LABEL = "FARA_VIN"


def absolutize_assets(html: str, base_url: Optional[str]) -> str:
    """Point relative assets/ references at base_url. No-op without a base."""
    if not base_url:
        return html
    base = base_url.rstrip("/")
    return _ASSET_REF_RE.sub(lambda m: f"{m.group(1)}={m.group(2)}{base}/assets/", html)


def inline_stylesheet(html: str, css: Optional[str]) -> str:
    """Swap the first assets/css/style.css <link> for an inline <style> block."""
    if not css:
        return html
    return _STYLESHEET_LINK_RE.sub(lambda m: f"<style>{css}</style>", html, count=1)


def strip_scripts(html: str) -> str:
    return _SCRIPT_RE.sub("", html)


def report_file_name(vin: Optional[str]) -> str:
    """Raport_<VIN>.html, or Raport_FARA_VIN.html for reports without a VIN."""
    label = _UNSAFE_FILE_CHARS_RE.sub("_", (vin or "").strip())
    return f"Raport_{label or NO_VIN_LABEL}.html"
