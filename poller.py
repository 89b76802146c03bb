#!/usr/bin/env python3
"""
Mailbox poller for TOPDON diagnostic reports.

Checks the inbox every POLL_SECONDS (never faster than once a minute), hands
each vendor report link to the pipeline and marks the message seen once it
has been handled. A small FastAPI app served by uvicorn answers /health
for the hosting platform's liveness check.

Messages are processed one at a time. A message whose report page could not
be fetched stays unseen and is picked up again on the next poll.
"""

import logging
import threading
import time
from typing import Optional

import uvicorn  # type: ignore
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from autodiag import __version__
from autodiag.inbox import InboundMessage, InboxReader
from autodiag.links import extract_report_link, is_vendor_message
from autodiag.pipeline import DiagnosticPipeline
from config import Settings

logger = logging.getLogger(__name__)


# ============================================================================
# HEALTH ENDPOINT
# ============================================================================

def get_health_app() -> FastAPI:
    """Liveness app: /health answers "ok", every other path "running"."""
    app = FastAPI(
        title="TOPDON Diagnostic Report Agent",
        description="Liveness endpoint of the report mailbox poller",
        version=__version__,
    )

    @app.get("/health", response_class=PlainTextResponse, tags=["Health"])
    async def health():
        return "ok"

    @app.get("/{path:path}", response_class=PlainTextResponse, tags=["Health"])
    async def running(path: str):
        return "running"

    return app


def start_health_server(port: int, host: str = "0.0.0.0") -> uvicorn.Server:
    """Serve the health app with uvicorn on a daemon thread and return the server."""
    config = uvicorn.Config(get_health_app(), host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="health", daemon=True)
    thread.start()
    logger.info(f"Health endpoint on {host}:{port}")
    return server


# ============================================================================
# POLLER
# ============================================================================

class ReportPoller:
    """Polls the mailbox and feeds vendor report links to the pipeline."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        inbox: Optional[InboxReader] = None,
        pipeline: Optional[DiagnosticPipeline] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.inbox = inbox or InboxReader(self.settings.imap)
        self.pipeline = pipeline or DiagnosticPipeline(self.settings)
        self._running = False

    def handle_message(self, msg: InboundMessage) -> bool:
        """
        Process one unseen message.

        Returns:
            True if the message was consumed (and marked seen)
        """
        host_hint = self.settings.link_host_hint
        if not is_vendor_message(msg.sender, msg.subject, host_hint):
            return False

        link = extract_report_link(msg.body, host_hint)
        if not link:
            logger.info(f"Vendor message {msg.uid} has no report link, marking seen")
            self.inbox.mark_seen(msg.uid)
            return True

        logger.info(f"Report URL: {link}")
        result = self.pipeline.process_url(link)
        if result is None:
            logger.warning(f"Could not retrieve report for message {msg.uid}; left unseen")
            return False

        self.inbox.mark_seen(msg.uid)
        return True

    def check_inbox(self) -> int:
        """One poll. Returns the number of messages consumed."""
        handled = 0
        for msg in self.inbox.unseen():
            try:
                if self.handle_message(msg):
                    handled += 1
            except Exception as e:
                logger.error(f"Failed to process message {msg.uid}: {e}", exc_info=True)
        logger.debug(f"Poll finished, {handled} messages handled")
        return handled

    def run_once(self) -> int:
        try:
            return self.check_inbox()
        except Exception as e:
            logger.error(f"Inbox check failed: {e}")
            # reconnect on the next poll
            self.inbox.close()
            return 0

    def run_forever(self):
        self._running = True
        interval = self.settings.poll_interval
        logger.info(f"Poller started, checking every {interval} sec")

        while self._running:
            self.run_once()
            time.sleep(interval)

        self.inbox.close()

    def stop(self):
        """Stop after the current poll."""
        self._running = False
