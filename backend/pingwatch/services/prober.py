"""Prober service - performs one HTTP(S) probe and classifies the result."""
import enum
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


class ProbeStatus(str, enum.Enum):
    SUCCESS = "success"
    FAIL = "fail"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of a single probe attempt."""
    status: ProbeStatus
    status_code: Optional[int] = None
    latency_ms: float = 0.0
    message: Optional[str] = None  # failure reason, None on success

    @property
    def ok(self) -> bool:
        return self.status is ProbeStatus.SUCCESS

    @property
    def log_message(self) -> str:
        """Text stored in the event log for this outcome."""
        if self.ok:
            return "OK"
        return self.message or "Request failed"


class ProberService:
    """Service for probing monitored endpoints.

    A probe is a single GET bounded by ``timeout`` seconds. Status codes in
    [200, 400) are provisionally successful; a configured keyword must then
    appear in the body. Everything else, including transport errors, is a
    failure carrying a descriptive message. The prober never retries and
    never touches persistence.
    """

    def __init__(self, timeout: float = settings.probe_timeout_seconds, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    def _client(self, headers: Dict[str, str]) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers=headers,
            transport=self._transport,
        )

    async def probe(
        self,
        target: str,
        keyword: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ProbeOutcome:
        """Probe ``target`` once and classify the outcome."""
        start = time.monotonic()

        def elapsed_ms() -> float:
            return round((time.monotonic() - start) * 1000, 2)

        try:
            async with self._client(headers or {}) as client:
                response = await client.get(target)
        except httpx.TimeoutException:
            return self._fail(target, None, elapsed_ms(), f"Request timeout after {self.timeout}s")
        except httpx.ConnectError as e:
            return self._fail(target, None, elapsed_ms(), f"Connection error: {str(e) or type(e).__name__}")
        except httpx.HTTPError as e:
            return self._fail(target, None, elapsed_ms(), str(e) or type(e).__name__)
        except httpx.InvalidURL as e:
            return self._fail(target, None, elapsed_ms(), f"Invalid URL: {e}")
        except (UnicodeError, ValueError, TypeError) as e:
            # Raised while building the request, e.g. a non-ASCII header value
            return self._fail(target, None, elapsed_ms(), f"Invalid request: {e}")

        status_code = response.status_code
        if not (200 <= status_code < 400):
            return self._fail(target, status_code, elapsed_ms(), f"HTTP Status {status_code}")

        if keyword and keyword not in response.text:
            return self._fail(target, status_code, elapsed_ms(), f'Keyword "{keyword}" not found.')

        return ProbeOutcome(
            status=ProbeStatus.SUCCESS,
            status_code=status_code,
            latency_ms=elapsed_ms(),
        )

    def _fail(self, target: str, status_code: Optional[int], latency_ms: float, message: str) -> ProbeOutcome:
        logger.error(f"[Ping Error] {target} -> {message}")
        return ProbeOutcome(
            status=ProbeStatus.FAIL,
            status_code=status_code,
            latency_ms=latency_ms,
            message=message,
        )


# Global instance
prober_service = ProberService()
