"""Probe executor - issues a single HTTP request against a monitor URL."""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Responded:
    """A completed HTTP exchange, whatever the status code."""
    status_code: int
    elapsed_ms: int


@dataclass(frozen=True)
class Unreachable:
    """The request never produced an HTTP response."""
    reason: str


Outcome = Union[Responded, Unreachable]


class ProbeExecutor:
    """Service for probing HTTP(S) endpoints.

    No retries happen here: the next scheduling tick is the retry.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        method: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.check_timeout_seconds
        self.method = (method or settings.probe_method).upper()
        self._transport = transport

    async def probe(self, url: str, timeout: Optional[float] = None) -> Outcome:
        """Probe a URL once and classify the transport-level outcome.

        The timeout bounds each connect, read, write and pool step and also
        the request as a whole, so a server that trickles bytes cannot stall
        the calling task.
        """
        timeout = timeout if timeout is not None else self.timeout

        try:
            start = time.monotonic()

            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                follow_redirects=False,
                transport=self._transport,
            ) as client:
                response = await asyncio.wait_for(client.request(self.method, url), timeout=timeout)

            elapsed_ms = int((time.monotonic() - start) * 1000)
            return Responded(status_code=response.status_code, elapsed_ms=elapsed_ms)

        except (httpx.TimeoutException, asyncio.TimeoutError):
            return Unreachable(reason=f"Connection timeout after {_format_seconds(timeout)} seconds")
        except httpx.ConnectError as e:
            return Unreachable(reason=_describe_connect_error(e))
        except httpx.UnsupportedProtocol as e:
            return Unreachable(reason=f"Unsupported URL: {e}")
        except httpx.TransportError as e:
            return Unreachable(reason=f"Network error: {e}")
        except httpx.InvalidURL as e:
            return Unreachable(reason=f"Invalid URL: {e}")


def _format_seconds(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _describe_connect_error(error: httpx.ConnectError) -> str:
    """Turn a connect error into a short, user-facing reason."""
    message = str(error)
    lowered = message.lower()

    if "name or service not known" in lowered or "nodename nor servname" in lowered \
            or "getaddrinfo" in lowered or "name resolution" in lowered:
        return "Unable to resolve hostname"

    if "ssl" in lowered or "certificate" in lowered or "tls" in lowered:
        return "SSL certificate validation failed"

    if "refused" in lowered:
        return "Connection refused"

    return f"Network error: {message}"


# Global instance
probe_executor = ProbeExecutor()
