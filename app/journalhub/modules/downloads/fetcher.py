from __future__ import annotations

import http.client
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass

from app.journalhub.errors import RemoteFetchFailed

logger = logging.getLogger(__name__)

# Characters left alone when percent-encoding a whole URL: the reserved set,
# the unreserved marks, and "%" so existing escapes are not encoded twice.
_URL_SAFE = ";,/?:@&=+$!*'()#%~"

MAX_RETRIES = 1
READ_CHUNK_SIZE = 64 * 1024


def encode_url(url: str) -> str:
    return urllib.parse.quote(url, safe=_URL_SAFE)


@dataclass(frozen=True)
class FetchResult:
    url: str
    content: bytes
    content_type: str | None = None

    @property
    def content_length(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class RemoteFetcher:
    """
    One GET against object storage, body read fully into memory.

    ``timeout_seconds`` bounds the whole attempt (connect, headers and body),
    not just each socket read. ``retries`` allows a single extra attempt after
    a network error or 5xx; anything above MAX_RETRIES is clamped.
    """

    timeout_seconds: float = 30.0
    retries: int = 0
    user_agent: str = "journalhub/1.0"

    def fetch(self, url: str) -> FetchResult:
        target = encode_url(url)
        attempts = 1 + max(0, min(self.retries, MAX_RETRIES))
        last_err: RemoteFetchFailed | None = None
        for attempt in range(1, attempts + 1):
            try:
                return self._get(target)
            except RemoteFetchFailed as e:
                last_err = e
                if not self._retryable(e) or attempt == attempts:
                    break
                logger.warning("Remote fetch attempt %s/%s failed for %s: %s; retrying", attempt, attempts, target, e.reason)
                time.sleep(0.5)
        assert last_err is not None
        raise last_err

    def _get(self, url: str) -> FetchResult:
        deadline = time.monotonic() + self.timeout_seconds
        req = urllib.request.Request(url, method="GET")
        req.add_header("User-Agent", self.user_agent)
        req.add_header("Accept", "*/*")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                status = getattr(resp, "status", 200)
                if not 200 <= status < 300:
                    raise RemoteFetchFailed(url=url, reason=f"HTTP {status}")
                body = self._read_body(resp, url, deadline)
                headers = getattr(resp, "headers", None)
                content_type = headers.get("Content-Type") if headers else None
                return FetchResult(url=url, content=body, content_type=content_type)
        except urllib.error.HTTPError as e:
            raise RemoteFetchFailed(url=url, reason=f"HTTP {e.code}") from e
        except TimeoutError as e:
            raise RemoteFetchFailed(url=url, reason=self._timeout_reason()) from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, TimeoutError):
                raise RemoteFetchFailed(url=url, reason=self._timeout_reason()) from e
            raise RemoteFetchFailed(url=url, reason=str(e.reason)) from e
        except http.client.HTTPException as e:
            # IncompleteRead and BadStatusLine reach here unwrapped by urllib.
            raise RemoteFetchFailed(url=url, reason=str(e) or type(e).__name__) from e
        except (OSError, ValueError) as e:
            raise RemoteFetchFailed(url=url, reason=str(e)) from e

    def _read_body(self, resp, url: str, deadline: float) -> bytes:
        # read1() returns after a single socket read, so a server that drips
        # bytes cannot hold the loop past the deadline.
        chunks: list[bytes] = []
        while True:
            chunk = resp.read1(READ_CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
            if time.monotonic() > deadline:
                raise RemoteFetchFailed(url=url, reason=self._timeout_reason())
        return b"".join(chunks)

    def _timeout_reason(self) -> str:
        return f"timed out after {self.timeout_seconds:g}s"

    @staticmethod
    def _retryable(e: RemoteFetchFailed) -> bool:
        reason = e.reason or ""
        if reason.startswith("HTTP "):
            return reason[5:].startswith("5")
        return True
