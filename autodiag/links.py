"""
Locating the vendor report inside an inbound e-mail.
"""
import html
import re
from typing import Optional

VENDOR_SENDER = "report-noreply@topdondiagnostics.com"
_SUBJECT_MARKERS = ("raport de diagnosticare", "diagnostic report")


def extract_report_link(body: str, host_hint: str = "topdon") -> Optional[str]:
    """Return the first http(s) URL in the body whose text contains host_hint."""
    if not body:
        return None
    pattern = re.compile(r'https?://[^\s"\'<>]*' + re.escape(host_hint) + r'[^\s"\'<>]*', re.IGNORECASE)
    match = pattern.search(body)
    if not match:
        return None
    return html.unescape(match.group(0))


def is_vendor_message(sender: str, subject: str, host_hint: str = "topdon") -> bool:
    """Whether a message looks like a scan-tool report notification."""
    sender = (sender or "").lower()
    subject = (subject or "").lower()
    if VENDOR_SENDER in sender or host_hint.lower() in sender:
        return True
    return any(marker in subject for marker in _SUBJECT_MARKERS)
