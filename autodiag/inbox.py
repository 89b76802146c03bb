"""
IMAP access to the mailbox the scan-tool reports are delivered to.
"""
import email
import imaplib
import logging
from dataclasses import dataclass
from email import policy
from email.message import EmailMessage
from typing import Iterator, Optional

from config import ImapConfig

logger = logging.getLogger(__name__)


@dataclass
class InboundMessage:
    uid: str
    sender: str
    subject: str
    body: str  # HTML part when present, else plain text


def message_body(msg: EmailMessage) -> str:
    """Prefer the HTML alternative, as the report link is usually an <a href>."""
    part = msg.get_body(preferencelist=("html", "plain"))
    if part is None:
        return ""
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError) as e:
        logger.debug(f"Could not decode message body: {e}")
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def parse_message(uid: str, raw: bytes) -> InboundMessage:
    msg = email.message_from_bytes(raw, policy=policy.default)
    return InboundMessage(
        uid=uid,
        sender=str(msg.get("From", "")),
        subject=str(msg.get("Subject", "")),
        body=message_body(msg),
    )


class InboxReader:
    """
    Thin wrapper over imaplib.

    Messages are fetched with BODY.PEEK so reading one does not flag it; the
    caller decides when a message counts as handled via mark_seen().
    """

    def __init__(self, config: ImapConfig):
        self.config = config
        self._conn: Optional[imaplib.IMAP4] = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def connect(self) -> None:
        if self._conn is not None:
            return
        cls = imaplib.IMAP4_SSL if self.config.secure else imaplib.IMAP4
        conn = cls(self.config.host, self.config.port)
        conn.login(self.config.user, self.config.password)
        status, _ = conn.select(self.config.mailbox)
        if status != "OK":
            conn.logout()
            raise imaplib.IMAP4.error(f"Cannot select mailbox {self.config.mailbox}")
        self._conn = conn
        logger.info(f"IMAP connected to {self.config.host} ({self.config.mailbox})")

    def close(self) -> None:
        """Drop the connection; the next connect() starts fresh."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug(f"IMAP logout failed: {e}")

    def unseen(self) -> Iterator[InboundMessage]:
        self.connect()
        status, data = self._conn.uid("SEARCH", None, "UNSEEN")
        if status != "OK":
            raise imaplib.IMAP4.error(f"UNSEEN search failed: {status}")

        uids = data[0].split() if data and data[0] else []
        logger.debug(f"{len(uids)} unseen messages")
        for raw_uid in uids:
            uid = raw_uid.decode() if isinstance(raw_uid, bytes) else str(raw_uid)
            status, parts = self._conn.uid("FETCH", uid, "(BODY.PEEK[])")
            if status != "OK":
                logger.warning(f"Could not fetch message {uid}")
                continue
            raw = next((p[1] for p in parts if isinstance(p, tuple)), None)
            if raw is None:
                continue
            yield parse_message(uid, raw)

    def mark_seen(self, uid: str) -> None:
        self.connect()
        self._conn.uid("STORE", uid, "+FLAGS", "(\\Seen)")
