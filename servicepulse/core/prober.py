"""Poll-until-timeout HTTP liveness probe."""

import asyncio
import logging
import time

import httpx

from servicepulse.lib.errors import ProbeError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000
DEFAULT_POLL_INTERVAL_MS = 500


def validate_probe_url(url: str) -> httpx.URL:
    """Parse a probe URL.

    Raises:
        ProbeError: If the URL is unparsable, not http(s), or has no host
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ProbeError(f"Malformed probe URL {url!r}: {e}") from e

    if parsed.scheme not in ("http", "https"):
        raise ProbeError(f"Unsupported probe URL scheme {parsed.scheme!r} in {url!r}")
    if not parsed.host:
        raise ProbeError(f"Probe URL has no host: {url!r}")
    return parsed


class HealthProber:
    """Checks whether an HTTP endpoint comes up within a time budget.

    A failed attempt (transport error or non-2xx) is retried every
    ``poll_interval_ms`` until ``timeout_ms`` has elapsed, so a service that is
    still starting up is not declared dead on the first refusal.
    """

    def __init__(self, client: httpx.AsyncClient):
        """Initialize prober.

        Args:
            client: Shared HTTP client, owned by the caller
        """
        self.client = client

    async def probe(
        self,
        url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> bool:
        """Poll ``url`` until it answers 2xx or the budget runs out.

        Args:
            url: Health endpoint
            timeout_ms: Total time budget in milliseconds
            poll_interval_ms: Wait between attempts in milliseconds

        Returns:
            True if a 2xx response was observed within the budget

        Raises:
            ProbeError: On a malformed URL or non-positive timing arguments
        """
        parsed = validate_probe_url(url)
        if timeout_ms <= 0 or poll_interval_ms <= 0:
            raise ProbeError(
                f"timeout_ms and poll_interval_ms must be positive "
                f"(got {timeout_ms}, {poll_interval_ms})"
            )

        budget = timeout_ms / 1000
        interval = poll_interval_ms / 1000
        start = time.monotonic()
        attempt = 0

        while True:
            remaining = budget - (time.monotonic() - start)
            if remaining <= 0:
                logger.debug(f"{url} gave up after {attempt} attempt(s)")
                return False

            attempt += 1
            try:
                response = await self.client.get(parsed, timeout=remaining)
                if response.is_success:
                    logger.debug(f"{url} healthy after {attempt} attempt(s)")
                    return True
                logger.debug(f"{url} attempt {attempt}: HTTP {response.status_code}")
            except httpx.HTTPError as e:
                logger.debug(f"{url} attempt {attempt}: {type(e).__name__}: {e}")

            # Never sleep past the deadline; the loop head stops at it.
            await asyncio.sleep(max(0.0, min(interval, budget - (time.monotonic() - start))))
