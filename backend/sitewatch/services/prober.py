"""Probe service - HTTP reachability and latency checks."""
import json
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

ERROR_HTTP_STATUS = "http_status"
ERROR_TIMEOUT = "timeout"
ERROR_NETWORK = "network_error"
ERROR_UNEXPECTED = "unexpected_error"


@dataclass
class ProbeResult:
    """Result of probing a URL."""
    up: bool
    error: Optional[str] = None
    error_code: Optional[str] = None  # http_status, timeout, network_error, unexpected_error
    details: Optional[str] = None
    avg_ms: Optional[float] = None
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None
    samples: List[float] = field(default_factory=list)


def normalize_url(url: str) -> str:
    """Prefix https:// when the URL carries no http(s) scheme."""
    url = url.strip()
    if not url.lower().startswith(("http:", "https:")):
        url = f"https://{url}"
    return url


class ProbeService:
    """Issues sequential GET requests against a URL and measures latency."""

    def __init__(
        self,
        timeout: float = settings.probe_timeout_seconds,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        # Custom transport is only used to substitute the network in tests
        self.transport = transport

    async def probe(self, url: str, count: int = settings.probe_sample_count) -> ProbeResult:
        """Probe a URL with up to ``count`` sequential requests.

        Stops at the first response outside the 2xx range. Timing statistics
        cover the 2xx samples only and are left empty when there are none.
        """
        if count < 1:
            raise ValueError(f"Sample count must be at least 1, got {count}")

        target = normalize_url(url)
        samples: List[float] = []
        failure: Optional[ProbeResult] = None

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                for _ in range(count):
                    start = time.perf_counter()
                    response = await client.get(target)
                    elapsed_ms = (time.perf_counter() - start) * 1000

                    if not (200 <= response.status_code < 300):
                        failure = ProbeResult(
                            up=False,
                            error=f"HTTP Status: {response.status_code} {response.reason_phrase}".strip(),
                            error_code=ERROR_HTTP_STATUS,
                            details=f"Response headers: {json.dumps(dict(response.headers))}",
                        )
                        break

                    samples.append(elapsed_ms)

        except httpx.TimeoutException:
            failure = ProbeResult(
                up=False,
                error="Request timeout",
                error_code=ERROR_TIMEOUT,
                details=f"The server did not respond within {self.timeout:g} seconds",
            )
        except httpx.TransportError as e:
            failure = ProbeResult(
                up=False,
                error="Network error",
                error_code=ERROR_NETWORK,
                details=f"{type(e).__name__}: {e}",
            )
        except Exception as e:
            logger.warning(f"Unexpected error probing {target}: {type(e).__name__}: {e}")
            failure = ProbeResult(
                up=False,
                error="Unexpected error",
                error_code=ERROR_UNEXPECTED,
                details=f"{type(e).__name__}: {e}",
            )

        result = failure or ProbeResult(up=True)
        result.samples = samples
        if samples:
            result.avg_ms = sum(samples) / len(samples)
            result.min_ms = min(samples)
            result.max_ms = max(samples)

        logger.debug(f"Probed {target}: up={result.up} samples={len(samples)} error={result.error}")
        return result


# Global instance
probe_service = ProbeService()
