"""Ledger webhook client with exponential backoff retry logic"""

import httpx
import asyncio
import logging
from typing import Dict, Any
from finance_gateway.config import settings
from finance_gateway.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter

logger = logging.getLogger(__name__)


class LedgerClient:
    """Client for notifying the external ledger about generated transactions"""

    def __init__(self, webhook_url: str | None = None, enabled: bool | None = None):
        self.webhook_url = webhook_url or settings.ledger_webhook_url
        self.enabled = settings.ledger_webhook_enabled if enabled is None else enabled
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    async def send_generation_event(self, payload: Dict[str, Any]) -> None:
        """
        Send a generation event to the ledger with retry logic.

        Runs after the database commit, so a delivery failure never changes
        what was persisted.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures; 4xx fails immediately
        - Tracks latency histogram and failure counter
        """
        if not self.enabled:
            return

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return  # Success

                except httpx.HTTPStatusError as e:
                    webhook_failure_counter.inc()
                    if e.response.status_code < 500:
                        logger.error(f"Ledger rejected event: {e.response.status_code}")
                        raise
                    attempt += 1
                    if attempt >= self.max_retries:
                        raise
                except httpx.RequestError:
                    webhook_failure_counter.inc()
                    attempt += 1
                    if attempt >= self.max_retries:
                        raise

                backoff = self.backoff_base * (2 ** (attempt - 1))
                logger.warning(f"Ledger webhook attempt {attempt} failed; retrying in {backoff}s")
                await asyncio.sleep(backoff)
