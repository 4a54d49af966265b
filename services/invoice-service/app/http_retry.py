import asyncio
from typing import Any, Dict, Optional

import httpx


def _is_retryable_error(exc: Exception) -> bool:
    if isinstance(exc, httpx.RequestError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


async def _retry_delay(attempt: int, base_delay_seconds: float) -> None:
    await asyncio.sleep(base_delay_seconds * (2 ** (attempt - 1)))


async def post_json_with_retry(
    url: str,
    *,
    json_body: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 10.0,
    attempts: int = 3,
    base_delay_seconds: float = 0.25,
    client: Optional[httpx.AsyncClient] = None,
) -> httpx.Response:
    """POST ``json_body``, retrying network errors and 5xx answers with exponential backoff."""
    owns_client = client is None
    client = client or httpx.AsyncClient()
    try:
        for attempt in range(1, attempts + 1):
            try:
                response = await client.post(url, headers=headers, json=json_body, timeout=timeout)
                response.raise_for_status()
                return response
            except (httpx.RequestError, httpx.HTTPStatusError) as exc:
                if attempt >= attempts or not _is_retryable_error(exc):
                    raise
                await _retry_delay(attempt, base_delay_seconds)
        raise RuntimeError("attempts must be at least 1")
    finally:
        if owns_client:
            await client.aclose()
