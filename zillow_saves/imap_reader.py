"""
IMAP reader – fetches listing-report emails from Yahoo Mail.

Flow for one fetch:
  1) TLS connect + login with an app password
  2) Select the mailbox read-only (nothing is marked \\Seen)
  3) UID SEARCH SINCE <watermark> SUBJECT "<subject>"
  4) UID FETCH of every hit in one batch, parsed into Documents

Timestamps are normalised to UTC here so the orchestrator sorts and
formats a single timezone.  The subject criterion is a server-side
pre-filter only; callers still check subjects themselves.
"""

from __future__ import annotations

import email
import imaplib
import logging
import re
import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from email import policy
from email.utils import parsedate_to_datetime
from html import unescape
from html.parser import HTMLParser
from typing import List

from zillow_saves.errors import AuthError, MailConnectionError, SearchError
from zillow_saves.models import Document

log = logging.getLogger(__name__)

YAHOO_IMAP_HOST = "imap.mail.yahoo.com"
YAHOO_IMAP_PORT = 993

# IMAP dates use English month names regardless of locale.
_IMAP_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_UID_RE = re.compile(rb"UID (\d+)")

FETCH_ITEMS = "(UID INTERNALDATE BODY.PEEK[])"


class DocumentSource(ABC):
    """Boundary the orchestrator uses to retrieve candidate documents."""

    @abstractmethod
    def fetch_documents(self, subject_filter: str, since: date) -> List[Document]:
        """
        Return documents published on or after *since* whose subject
        matches *subject_filter*.

        Returns an empty list when nothing matches.  Raises
        MailConnectionError, AuthError or SearchError.
        """
        raise NotImplementedError


# ------------------------------------------------------------------
# Body / header helpers
# ------------------------------------------------------------------

class _HTMLStripper(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []

    def handle_data(self, data: str) -> None:
        if data:
            self._parts.append(data)

    def get_text(self) -> str:
        return " ".join(self._parts)


def html_to_text(html: str) -> str:
    if not html:
        return ""
    stripper = _HTMLStripper()
    stripper.feed(html)
    stripper.close()
    text = unescape(stripper.get_text())
    return re.sub(r"\s+", " ", text).strip()


def imap_date(d: date) -> str:
    """Format *d* as an IMAP search date, e.g. 21-Jul-2025."""
    return f"{d.day:02d}-{_IMAP_MONTHS[d.month - 1]}-{d.year}"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_search_criteria(subject: str, since: date) -> list[str]:
    criteria = ["SINCE", imap_date(since)]
    if subject:
        if subject.isascii():
            criteria += ["SUBJECT", _quote(subject)]
        else:
            log.info("Subject %r is not ASCII; filtering by subject client-side only", subject)
    return criteria


def _part_text(part) -> str:
    try:
        content = part.get_content()
    except (LookupError, UnicodeDecodeError):
        raw = part.get_payload(decode=True) or b""
        content = raw.decode("utf-8", errors="replace")
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    return content or ""


def extract_body_text(msg) -> str:
    """Return every inline text part of *msg*: plain parts first, then
    HTML parts converted to text, joined by newlines.

    Some reports carry the count only in the HTML alternative.
    """
    plain, html = [], []
    for part in msg.walk():
        if part.is_multipart() or part.is_attachment():
            continue
        ctype = part.get_content_type()
        if ctype == "text/plain":
            plain.append(_part_text(part))
        elif ctype == "text/html":
            html.append(html_to_text(_part_text(part)))
    if not plain and not html and not msg.is_multipart():
        payload = msg.get_payload(decode=True)
        if isinstance(payload, bytes):
            return payload.decode(msg.get_content_charset() or "utf-8", errors="replace")
        return ""
    return "\n".join(t.strip() for t in plain + html if t.strip())


def _to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_message(uid: str, raw: bytes, fetch_header: bytes = b"") -> Document:
    """Build a Document from a raw RFC 822 message."""
    msg = email.message_from_bytes(raw, policy=policy.default)
    subject = str(msg.get("subject", "") or "").strip()

    published_at = None
    date_header = msg.get("date")
    if date_header:
        try:
            published_at = _to_utc(parsedate_to_datetime(str(date_header)))
        except (TypeError, ValueError):
            log.debug("Unparseable Date header %r on uid=%s", str(date_header), uid)
    if published_at is None:
        internal = imaplib.Internaldate2tuple(fetch_header) if fetch_header else None
        if internal is None:
            raise SearchError(f"Message uid={uid} has no usable date", {"subject": subject})
        published_at = datetime.fromtimestamp(time.mktime(internal), tz=timezone.utc)
        log.debug("uid=%s: using INTERNALDATE %s", uid, published_at.isoformat())

    return Document(
        subject=subject,
        published_at=published_at,
        body=extract_body_text(msg),
        id=uid,
    )


# ------------------------------------------------------------------
# YahooImapReader
# ------------------------------------------------------------------

class YahooImapReader(DocumentSource):
    def __init__(self, username, app_password, host=YAHOO_IMAP_HOST,
                 port=YAHOO_IMAP_PORT, mailbox="INBOX",
                 connection_factory=imaplib.IMAP4_SSL):
        self.username = username
        self.app_password = app_password
        self.host = host
        self.port = port
        self.mailbox = mailbox
        self._connection_factory = connection_factory

    def fetch_documents(self, subject_filter, since):
        conn = self._connect()
        try:
            self._login(conn)
            self._select(conn)
            uids = self._search(conn, subject_filter, since)
            if not uids:
                log.info("No emails with matching subject since %s", since.isoformat())
                return []
            log.info("Found %d emails with matching subject since %s",
                     len(uids), since.isoformat())
            return self._fetch(conn, uids)
        finally:
            self._logout(conn)

    # ------------------------------------------------------------------
    # Protocol steps
    # ------------------------------------------------------------------

    def _connect(self):
        log.info("Connecting to %s:%d", self.host, self.port)
        try:
            return self._connection_factory(self.host, self.port)
        except (OSError, imaplib.IMAP4.error) as exc:
            raise MailConnectionError(
                f"Failed to connect to IMAP server: {exc}",
                {"host": self.host, "port": self.port},
            ) from exc

    def _login(self, conn):
        try:
            conn.login(self.username, self.app_password)
        except imaplib.IMAP4.error as exc:
            raise AuthError(f"Failed to login: {exc}", {"username": self.username}) from exc
        except OSError as exc:
            raise MailConnectionError(f"Connection lost during login: {exc}",
                                      {"host": self.host}) from exc
        log.debug("Logged in as %s", self.username)

    def _select(self, conn):
        try:
            typ, data = conn.select(self.mailbox, readonly=True)
        except imaplib.IMAP4.error as exc:
            raise SearchError(f"Failed to select {self.mailbox}: {exc}") from exc
        except OSError as exc:
            raise MailConnectionError(f"Connection lost selecting {self.mailbox}: {exc}",
                                      {"host": self.host}) from exc
        if typ != "OK":
            raise SearchError(f"Failed to select {self.mailbox}: {data}")

    def _search(self, conn, subject, since):
        criteria = build_search_criteria(subject, since)
        log.debug("UID SEARCH %s", " ".join(criteria))
        try:
            typ, data = conn.uid("SEARCH", *criteria)
        except imaplib.IMAP4.error as exc:
            raise SearchError(f"Search failed: {exc}", {"criteria": criteria}) from exc
        except OSError as exc:
            raise MailConnectionError(f"Connection lost during search: {exc}",
                                      {"host": self.host}) from exc
        if typ != "OK":
            raise SearchError(f"Search failed: {data}", {"criteria": criteria})
        uids = []
        for chunk in data or []:
            if chunk:
                uids.extend(u.decode() for u in chunk.split())
        return uids

    def _fetch(self, conn, uids):
        try:
            typ, data = conn.uid("FETCH", ",".join(uids), FETCH_ITEMS)
        except imaplib.IMAP4.error as exc:
            raise SearchError(f"Fetch failed: {exc}", {"uids": len(uids)}) from exc
        except OSError as exc:
            raise MailConnectionError(f"Connection lost during fetch: {exc}",
                                      {"host": self.host, "uids": len(uids)}) from exc
        if typ != "OK":
            raise SearchError(f"Fetch failed: {data}", {"uids": len(uids)})

        documents = []
        position = 0
        for item in data or []:
            if not isinstance(item, tuple) or len(item) < 2:
                continue  # closing ")" lines
            header, raw = item[0], item[1]
            m = _UID_RE.search(header or b"")
            if m:
                uid = m.group(1).decode()
            else:
                uid = uids[position] if position < len(uids) else str(position + 1)
            position += 1
            documents.append(parse_message(uid, raw, header))

        if len(documents) != len(uids):
            log.warning("Requested %d messages, server returned %d", len(uids), len(documents))
        return documents

    def _logout(self, conn):
        try:
            conn.logout()
        except (OSError, imaplib.IMAP4.error) as exc:
            log.debug("IMAP logout failed: %s", exc)
