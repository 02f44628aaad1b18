"""HTTP client with retry/backoff and feed request metrics."""
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from . import config

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


@dataclass
class RequestMetrics:
    network_feed: int = 0
    cache_hits_feed: int = 0
    inflight_joins_feed: int = 0
    stale_discards: int = 0

    def inc_network(self) -> None:
        self.network_feed += 1

    def inc_cache_hit(self) -> None:
        self.cache_hits_feed += 1

    def inc_inflight_join(self) -> None:
        self.inflight_joins_feed += 1

    def inc_stale_discard(self) -> None:
        self.stale_discards += 1


class HttpClient:
    def __init__(
        self,
        timeout: int = config.HTTP_TIMEOUT_SECONDS,
        retry_max: int = config.HTTP_RETRY_MAX,
        backoff_base: float = config.HTTP_BACKOFF_BASE,
        backoff_max: float = config.HTTP_BACKOFF_MAX,
        user_agent: str = config.HTTP_USER_AGENT,
    ) -> None:
        self.timeout = timeout
        self.retry_max = retry_max
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.user_agent = user_agent
        self.session = requests.Session()

    def post_text(
        self,
        url: str,
        body: str,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        headers = {
            "User-Agent": self.user_agent,
            "Content-Type": "text/plain; charset=utf-8",
        }
        if extra_headers:
            headers.update(extra_headers)
        payload = body.encode("utf-8")
        return self._request_json(
            lambda: self.session.post(url, data=payload, headers=headers, timeout=self.timeout),
            url,
        )

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {"User-Agent": self.user_agent}
        return self._request_json(
            lambda: self.session.get(url, params=params, headers=headers, timeout=self.timeout),
            url,
        )

    def _request_json(self, send, url: str) -> Dict[str, Any]:
        for attempt in range(1, self.retry_max + 1):
            try:
                resp = send()
            except requests.RequestException:
                if attempt >= self.retry_max:
                    raise
                logger.warning("Request to %s failed (attempt %s)", url, attempt)
                self._sleep_backoff(attempt)
                continue

            status = resp.status_code
            if status == 200:
                try:
                    return resp.json()
                except ValueError:
                    logger.error("Non-JSON response from %s", url)
                    raise

            if status in RETRYABLE_STATUSES:
                logger.warning("HTTP %s from %s (attempt %s)", status, url, attempt)
                if attempt >= self.retry_max:
                    resp.raise_for_status()
                if not self._sleep_retry_after(resp):
                    self._sleep_backoff(attempt)
                continue

            # Non-retryable
            logger.error("HTTP %s from %s", status, url)
            resp.raise_for_status()

        raise RuntimeError("Unexpected HTTP retry loop exit")

    def _sleep_backoff(self, attempt: int) -> None:
        base = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
        jitter = random.uniform(0, self.backoff_base)
        time.sleep(base + jitter)

    def _sleep_retry_after(self, resp: requests.Response) -> bool:
        retry_after = resp.headers.get("Retry-After")
        if not retry_after:
            return False
        try:
            delay = float(retry_after)
        except ValueError:
            return False
        delay = max(0.0, min(delay, self.backoff_max))
        time.sleep(delay)
        return True
