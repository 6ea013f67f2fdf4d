"""Retrying wrapper for record-store HTTP calls.

Airtable allows five requests per second per base and answers bursts with
429; after a 429 it expects the client to back off for 30 seconds. Server
errors and dropped connections are retried on the same schedule. Client
errors (401, 403, 404, 422) mean bad credentials, a missing record or an
invalid field and are raised immediately.

Usage:
    from incident_dedup.utils.http_retry import retry_request

    resp = retry_request(client, "GET", url, headers=headers, params=params)
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

_RETRYABLE_EXCEPTIONS = (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError)

DEFAULT_DELAYS: list[float] = [1, 5, 30]

# Airtable's documented penalty window after a 429
RATE_LIMIT_PENALTY_SECONDS = 30.0


def retry_request(
    client: httpx.Client,
    method: str,
    url: str,
    *,
    delays: list[float] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> httpx.Response:
    """Send ``method url`` through ``client``, retrying transient failures.

    Args:
        client: httpx client the request is sent with.
        method: HTTP verb.
        url: absolute request URL.
        delays: backoff schedule in seconds; one retry per entry.
        sleep: called with each delay (tests pass a no-op).
        **kwargs: forwarded to ``client.request`` (headers, params, json).

    Raises:
        httpx.HTTPStatusError: non-retryable status, or retries exhausted.
        httpx.TransportError: network failure after all retries.
    """
    if delays is None:
        delays = DEFAULT_DELAYS

    for attempt in range(1 + len(delays)):
        try:
            resp = client.request(method, url, **kwargs)
        except _RETRYABLE_EXCEPTIONS as exc:
            if attempt >= len(delays):
                raise
            delay = delays[attempt]
            logger.warning(
                "%s for %s %s — retrying in %.0fs (attempt %d/%d)",
                type(exc).__name__, method, _url_for_log(url), delay, attempt + 1, len(delays),
            )
            sleep(delay)
            continue

        if resp.status_code < 400:
            return resp
        if resp.status_code not in _RETRYABLE_STATUS_CODES or attempt >= len(delays):
            resp.raise_for_status()

        delay = delays[attempt]
        if resp.status_code == 429:
            delay = max(delay, _retry_after(resp))
        logger.warning(
            "HTTP %d from %s %s — retrying in %.0fs (attempt %d/%d)",
            resp.status_code, method, _url_for_log(url), delay, attempt + 1, len(delays),
        )
        sleep(delay)

    raise RuntimeError("retry_request exhausted retries without result")


def _retry_after(resp: httpx.Response) -> float:
    header = resp.headers.get("Retry-After")
    if header:
        try:
            return float(header)
        except ValueError:
            pass
    return RATE_LIMIT_PENALTY_SECONDS


def _url_for_log(url: str) -> str:
    # Query strings carry filter formulas; keep log lines short
    return str(url).split("?", 1)[0][:120]
