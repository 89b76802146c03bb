"""Tests for autodiag/links.py — report link and vendor message detection."""

import pytest

from autodiag.links import extract_report_link, is_vendor_message


def test_picks_vendor_link_and_ignores_others():
    body = (
        '<p>Salut,</p><a href="https://example.com/unsubscribe">x</a>'
        '<a href="https://www.topdon.com/report/view?id=42&amp;lang=ro">Vezi raportul</a>'
    )
    assert extract_report_link(body) == "https://www.topdon.com/report/view?id=42&lang=ro"


def test_plain_text_body():
    body = "Raportul este aici: http://reports.TOPDON.net/r/abc123 multumim"
    assert extract_report_link(body) == "http://reports.TOPDON.net/r/abc123"


def test_custom_host_hint():
    body = "https://a.example/x https://scan.vendor.io/r/1"
    assert extract_report_link(body, host_hint="vendor.io") == "https://scan.vendor.io/r/1"


@pytest.mark.parametrize("body", [None, "", "no links at all", "https://example.com/only"])
def test_no_link(body):
    assert extract_report_link(body) is None


@pytest.mark.parametrize("sender,subject,expected", [
    ("TOPDON <report-noreply@topdondiagnostics.com>", "Your report", True),
    ("noreply@mail.topdon.com", "", True),
    ("service@garage.ro", "Raport de diagnosticare vehicul", True),
    ("someone@else.com", "Diagnostic Report ready", True),
    ("newsletter@shop.com", "Oferte saptamana aceasta", False),
    (None, None, False),
])
def test_is_vendor_message(sender, subject, expected):
    assert is_vendor_message(sender, subject) is expected
