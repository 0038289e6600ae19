from __future__ import annotations

import time
from dataclasses import dataclass

import requests

from logging_utils import get_logger
from settings import SETTINGS
from support.errors import UpstreamError

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


@dataclass(frozen=True)
class SourceResponse:
    url: str
    status_code: int
    content: bytes
    content_type: str | None


def _safe_preview_bytes(data: bytes | None, *, limit: int = 500) -> str:
    """Truncated, log-safe preview of a response body."""

    if not data:
        return ""
    return data[:limit].decode("utf-8", errors="replace")


def _headers_for_log(headers: dict[str, str]) -> dict[str, str]:
    """Return a redacted copy of headers for logging."""

    redacted: dict[str, str] = {}
    for k, v in (headers or {}).items():
        lk = str(k).lower()
        if lk in {"authorization", "x-api-key", "api-key"} or "token" in lk or "secret" in lk:
            redacted[str(k)] = "<redacted>"
        else:
            redacted[str(k)] = str(v)
    return redacted


def _default_user_agent() -> str:
    ua = SETTINGS.get("SHELTER_USER_AGENT")
    if isinstance(ua, str) and ua.strip():
        return ua.strip()
    return "shelter-cache (contact: unset)"


def _parse_retry_after_seconds(value: str | None) -> float | None:
    # Only the integer-seconds form; HTTP dates fall back to backoff.
    if not value or not value.strip():
        return None
    try:
        return float(int(value.strip()))
    except ValueError:
        return None


def _sleep_backoff(
    attempt_index: int, *, base_seconds: float = 0.5, cap_seconds: float = 8.0
) -> None:
    # 0.5, 1, 2 ... capped
    time.sleep(min(base_seconds * (2**attempt_index), cap_seconds))


def get(
    url: str,
    *,
    source: str,
    session: requests.Session | None = None,
    headers: dict[str, str] | None = None,
    params: dict[str, object] | None = None,
    timeout_seconds: float = 30.0,
    max_attempts: int = 3,
    user_agent: str | None = None,
) -> SourceResponse:
    """HTTP GET with User-Agent, timeout and retry/backoff on transient failures.

    Raises:
        UpstreamError: network failure on the last attempt, or any non-2xx
            response that is not retryable (or still failing after retries).
    """

    if max_attempts <= 0:
        raise ValueError("max_attempts must be >= 1")

    s = session or requests.Session()

    merged_headers = {
        "User-Agent": user_agent or _default_user_agent(),
        "Accept-Encoding": "gzip",
    }
    if headers:
        merged_headers.update(headers)

    for attempt in range(max_attempts):
        try:
            resp = s.get(
                url, headers=merged_headers, params=params, timeout=timeout_seconds
            )
        except requests.RequestException as e:
            logger.warning(
                "Upstream request failed | source=%s url=%s attempt=%s/%s err=%s",
                source,
                url,
                attempt + 1,
                max_attempts,
                e,
            )
            if attempt < max_attempts - 1:
                _sleep_backoff(attempt)
                continue
            raise UpstreamError(
                f"{source}: request failed url={url}: {e}", source=source
            ) from e

        if 200 <= resp.status_code < 300:
            return SourceResponse(
                url=url,
                status_code=resp.status_code,
                content=resp.content,
                content_type=resp.headers.get("Content-Type"),
            )

        retry_after_raw = resp.headers.get("Retry-After")
        logger.warning(
            "Upstream non-2xx response | source=%s status=%s url=%s attempt=%s/%s "
            "retry_after=%s headers=%s body_preview=%s",
            source,
            resp.status_code,
            url,
            attempt + 1,
            max_attempts,
            retry_after_raw,
            _headers_for_log(merged_headers),
            _safe_preview_bytes(getattr(resp, "content", b"")),
        )

        if resp.status_code in RETRYABLE_STATUS_CODES and attempt < max_attempts - 1:
            retry_after = _parse_retry_after_seconds(retry_after_raw)
            if retry_after is not None:
                time.sleep(retry_after)
            else:
                _sleep_backoff(attempt)
            continue

        raise UpstreamError(
            f"{source}: request failed status={resp.status_code} url={url}",
            source=source,
        )

    # Loop always returns or raises.
    raise UpstreamError(f"{source}: request failed url={url}", source=source)
