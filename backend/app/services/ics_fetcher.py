from __future__ import annotations

import codecs
from dataclasses import dataclass
import logging
import threading
from typing import Iterable, Iterator

import httpx

logger = logging.getLogger(__name__)


class FeedFetchError(RuntimeError):
    """Transient network failure or non-2xx answer for one feed URL."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"{url}: {message}")


@dataclass(frozen=True)
class FeedPayload:
    zenturie: str
    semester: int
    url: str
    text: str


@dataclass
class _CacheEntry:
    etag: str | None
    last_modified: str | None
    text: str


def build_feed_url(base_url: str, zenturie: str, semester: int) -> str:
    return f"{base_url.rstrip('/')}/{zenturie}_{semester}.ics"


SNIFFED_ENCODINGS = ("utf-8", "cp1252")


def decode_body(body: bytes, charset: str | None) -> str:
    """Decode ``body`` with the declared charset, else sniff UTF-8 and fall back to Windows-1252."""
    encodings = list(SNIFFED_ENCODINGS)
    if charset:
        try:
            codecs.lookup(charset)
        except LookupError:
            logger.warning("Unknown charset %r, sniffing feed encoding", charset)
        else:
            encodings.insert(0, charset)
    for encoding in encodings:
        try:
            return body.decode(encoding)
        except UnicodeDecodeError:
            continue
    # latin-1 maps every byte.
    return body.decode("latin-1")


class FeedFetcher:
    """Issues conditional GETs for cohort feeds and yields decoded payloads.

    Validators (ETag / Last-Modified) are remembered per URL for the lifetime
    of the fetcher, so a 304 answer reuses the previously decoded body.
    """

    def __init__(
        self,
        base_url: str,
        *,
        semesters: int = 7,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.semesters = semesters
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport, follow_redirects=True)
        self._cache: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "FeedFetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch(self, url: str) -> str:
        headers = {"Accept": "text/calendar"}
        with self._lock:
            cached = self._cache.get(url)
        if cached is not None:
            if cached.etag:
                headers["If-None-Match"] = cached.etag
            if cached.last_modified:
                headers["If-Modified-Since"] = cached.last_modified

        try:
            response = self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise FeedFetchError(url, f"request failed: {exc}") from exc

        if response.status_code == 304 and cached is not None:
            return cached.text
        if not response.is_success:
            raise FeedFetchError(url, f"unexpected status {response.status_code}")

        text = decode_body(response.content, response.charset_encoding)
        etag = response.headers.get("etag")
        last_modified = response.headers.get("last-modified")
        if etag or last_modified:
            with self._lock:
                self._cache[url] = _CacheEntry(etag=etag, last_modified=last_modified, text=text)
        return text

    def iter_payloads(
        self,
        zenturien: Iterable[str],
        *,
        stop_event: threading.Event | None = None,
    ) -> Iterator[FeedPayload]:
        for zenturie in zenturien:
            for semester in range(1, self.semesters + 1):
                if stop_event is not None and stop_event.is_set():
                    logger.info("Feed fetch cancelled before %s_%s", zenturie, semester)
                    return
                url = build_feed_url(self.base_url, zenturie, semester)
                try:
                    text = self.fetch(url)
                except FeedFetchError as exc:
                    logger.info("Skipping feed %s", exc)
                    continue
                yield FeedPayload(zenturie=zenturie, semester=semester, url=url, text=text)
