"""Tests for poller.py — inbox handling loop and health endpoint."""

import imaplib
import socket
import time
from unittest.mock import MagicMock

import pytest
import requests

from autodiag.inbox import InboundMessage
from config import Settings


VENDOR = "TOPDON <report-noreply@topdondiagnostics.com>"
LINK = "https://www.topdon.com/report/view?id=42"


class FakeInbox:
    def __init__(self, messages=(), error=None):
        self.messages = list(messages)
        self.error = error
        self.seen = []
        self.closed = 0

    def unseen(self):
        if self.error:
            raise self.error
        return iter(self.messages)

    def mark_seen(self, uid):
        self.seen.append(uid)

    def close(self):
        self.closed += 1


def make_poller(inbox, pipeline=None):
    from poller import ReportPoller
    return ReportPoller(settings=Settings(), inbox=inbox, pipeline=pipeline or MagicMock())


def test_vendor_message_processed_and_marked_seen():
    msg = InboundMessage(uid="7", sender=VENDOR, subject="Report", body=f'<a href="{LINK}">x</a>')
    inbox = FakeInbox([msg])
    pipeline = MagicMock()

    handled = make_poller(inbox, pipeline).check_inbox()

    pipeline.process_url.assert_called_once_with(LINK)
    assert inbox.seen == ["7"]
    assert handled == 1


def test_foreign_message_left_alone():
    msg = InboundMessage(uid="3", sender="shop@example.com", subject="Oferte", body=LINK)
    inbox = FakeInbox([msg])
    pipeline = MagicMock()

    assert make_poller(inbox, pipeline).check_inbox() == 0
    pipeline.process_url.assert_not_called()
    assert inbox.seen == []


def test_vendor_message_without_link_marked_seen():
    msg = InboundMessage(uid="5", sender=VENDOR, subject="Report", body="no link here")
    inbox = FakeInbox([msg])
    pipeline = MagicMock()

    make_poller(inbox, pipeline).check_inbox()

    pipeline.process_url.assert_not_called()
    assert inbox.seen == ["5"]


def test_failed_fetch_leaves_message_unseen():
    msg = InboundMessage(uid="9", sender=VENDOR, subject="Report", body=LINK)
    inbox = FakeInbox([msg])
    pipeline = MagicMock()
    pipeline.process_url.return_value = None

    assert make_poller(inbox, pipeline).check_inbox() == 0
    assert inbox.seen == []


def test_one_failing_message_does_not_stop_the_poll():
    bad = InboundMessage(uid="1", sender=VENDOR, subject="Report", body=LINK + "?bad")
    good = InboundMessage(uid="2", sender=VENDOR, subject="Report", body=LINK)
    inbox = FakeInbox([bad, good])
    pipeline = MagicMock()
    pipeline.process_url.side_effect = [RuntimeError("boom"), MagicMock()]

    assert make_poller(inbox, pipeline).check_inbox() == 1
    assert inbox.seen == ["2"]


def test_inbox_error_drops_connection():
    inbox = FakeInbox(error=imaplib.IMAP4.error("connection reset"))

    assert make_poller(inbox).run_once() == 0
    assert inbox.closed == 1


def test_health_routes():
    from fastapi.testclient import TestClient

    from poller import get_health_app

    client = TestClient(get_health_app())

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.text == "ok"
    assert resp.headers["content-type"].startswith("text/plain")
    assert client.get("/").text == "running"
    assert client.get("/status/anything").text == "running"


def test_health_server_runs_in_background():
    from poller import start_health_server

    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    server = start_health_server(port, host="127.0.0.1")
    try:
        deadline = time.monotonic() + 10
        while not server.started and time.monotonic() < deadline:
            time.sleep(0.05)
        assert server.started
        assert requests.get(f"http://127.0.0.1:{port}/health", timeout=5).text == "ok"
    finally:
        server.should_exit = True
