"""
tasknode/protocol/content.py

Content retrieval across a fixed, ordered list of gateways.

Gateways are tried one at a time. Each attempt is bounded by a timeout
that cancels the in-flight request; the first body that does not look
like a gateway HTML error page wins. There is no racing and no retry
within a gateway, so the worst case is len(gateways) x timeout.
"""

import logging
from typing import Iterator, List, Optional, Sequence

import httpx
import trio

from ..config import DEFAULT_FETCH_TIMEOUT, GATEWAY_URL_TEMPLATES
from ..metrics import ProtocolMetrics

logger = logging.getLogger("tasknode.protocol.content")


class ContentNotFoundError(Exception):
    """Every gateway failed to return the content."""

    def __init__(self, cid: str, file_name: str, failures: List[str]):
        self.cid = cid
        self.file_name = file_name
        self.failures = failures
        super().__init__(
            f"{cid}/{file_name} not found on {len(failures)} gateway(s)"
        )


def looks_like_error_page(body: str) -> bool:
    """Gateways answer some failures with a 200 HTML page."""
    return body.startswith("<")


class ContentFetcher:
    """
    Fetches immutable content by content id.

    Usage:
        fetcher = ContentFetcher()
        body = await fetcher.fetch(cid, "submission.json")
    """

    def __init__(
        self,
        gateways: Optional[Sequence[str]] = None,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[ProtocolMetrics] = None,
    ):
        """
        Initialize ContentFetcher.

        Args:
            gateways: URL templates with {cid} and {file_name}, in priority order
            timeout: Seconds allowed per gateway
            http_client: Optional client (tests inject a mock transport)
            metrics: Optional metrics sink
        """
        self.gateways = list(gateways) if gateways is not None else list(GATEWAY_URL_TEMPLATES)
        self.timeout = timeout
        self.metrics = metrics
        self._http = http_client

    def candidate_urls(self, cid: str, file_name: str) -> Iterator[str]:
        """Yield gateway URLs in priority order."""
        for template in self.gateways:
            yield template.format(cid=cid, file_name=file_name)

    async def fetch(self, cid: str, file_name: str) -> str:
        """
        Return the content body from the first gateway that serves it.

        Raises:
            ContentNotFoundError: If every gateway fails
        """
        if self._http is not None:
            return await self._fetch_with(self._http, cid, file_name)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await self._fetch_with(client, cid, file_name)

    async def _fetch_with(self, client: httpx.AsyncClient, cid: str, file_name: str) -> str:
        failures: List[str] = []
        for url in self.candidate_urls(cid, file_name):
            body = await self._try_gateway(client, url, failures)
            if body is not None:
                logger.debug(f"Fetched {cid}/{file_name} from {url}")
                return body
            if self.metrics:
                self.metrics.inc("tasknode_gateway_failures_total")

        logger.warning(f"All {len(failures)} gateways failed for {cid}/{file_name}")
        raise ContentNotFoundError(cid, file_name, failures)

    async def _try_gateway(
        self, client: httpx.AsyncClient, url: str, failures: List[str]
    ) -> Optional[str]:
        body: Optional[str] = None
        with trio.move_on_after(self.timeout) as scope:
            try:
                response = await client.get(url)
                response.raise_for_status()
                body = response.text
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                failures.append(f"{url}: {e}")
                logger.debug(f"Gateway failed {url}: {e}")
                return None

        if scope.cancelled_caught:
            failures.append(f"{url}: timed out after {self.timeout}s")
            logger.debug(f"Gateway timed out {url}")
            return None

        if looks_like_error_page(body):
            failures.append(f"{url}: HTML error page")
            logger.debug(f"Gateway returned an error page {url}")
            return None

        return body
