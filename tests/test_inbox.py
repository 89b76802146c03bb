"""Tests for autodiag/inbox.py — message parsing and IMAP calls."""

from email.message import EmailMessage
from unittest.mock import MagicMock, patch

from autodiag.inbox import InboxReader, parse_message
from config import ImapConfig


def build_raw(html=None, text=None):
    msg = EmailMessage()
    msg["From"] = "TOPDON <report-noreply@topdondiagnostics.com>"
    msg["To"] = "atelier@example.com"
    msg["Subject"] = "Raport de diagnosticare"
    msg.set_content(text or "plain body")
    if html:
        msg.add_alternative(html, subtype="html")
    return msg.as_bytes()


def test_parse_message_prefers_html():
    raw = build_raw(html='<a href="https://www.topdon.com/r/1">raport</a>', text="plain")
    msg = parse_message("12", raw)

    assert msg.uid == "12"
    assert "report-noreply@topdondiagnostics.com" in msg.sender
    assert msg.subject == "Raport de diagnosticare"
    assert "https://www.topdon.com/r/1" in msg.body


def test_parse_message_plain_only():
    msg = parse_message("1", build_raw(text="Link: https://www.topdon.com/r/2"))
    assert "https://www.topdon.com/r/2" in msg.body


def fake_connection(raw):
    conn = MagicMock()
    conn.select.return_value = ("OK", [b"2"])

    def uid(command, *args):
        if command == "SEARCH":
            return "OK", [b"7 9"]
        if command == "FETCH":
            return "OK", [(f"{args[0]} (UID {args[0]} BODY[] {{100}}".encode(), raw), b")"]
        return "OK", [b""]

    conn.uid.side_effect = uid
    return conn


def test_unseen_and_mark_seen():
    conn = fake_connection(build_raw(html="<p>https://www.topdon.com/r/1</p>"))
    config = ImapConfig(user="u", password="p")

    with patch("autodiag.inbox.imaplib.IMAP4_SSL", return_value=conn) as imap_cls:
        reader = InboxReader(config)
        messages = list(reader.unseen())
        reader.mark_seen("7")

    imap_cls.assert_called_once_with("imap.gmail.com", 993)
    conn.login.assert_called_once_with("u", "p")
    conn.select.assert_called_once_with("INBOX")
    assert [m.uid for m in messages] == ["7", "9"]
    conn.uid.assert_any_call("FETCH", "7", "(BODY.PEEK[])")
    conn.uid.assert_any_call("STORE", "7", "+FLAGS", "(\\Seen)")


def test_plain_imap_when_not_secure():
    conn = fake_connection(build_raw())
    with patch("autodiag.inbox.imaplib.IMAP4", return_value=conn) as imap_cls:
        reader = InboxReader(ImapConfig(host="localhost", port=143, secure=False))
        reader.connect()
        assert reader.connected
        reader.close()

    imap_cls.assert_called_once_with("localhost", 143)
    conn.logout.assert_called_once()
    assert not reader.connected
