"""Client utilities for the Baserow REST API."""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

PAGE_SIZE = 200
MAX_PAGES = 100


def _build_session() -> requests.Session:
    session = requests.Session()
    # Retry honours Retry-After on 429/503 responses.
    retries = Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET",),
        respect_retry_after_header=True,
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.headers.update({"Accept": "application/json"})
    return session


_SESSION = _build_session()


class BaserowError(RuntimeError):
    """Raised when Baserow returns a payload we cannot use."""


def _auth(token: Optional[str], public_token: Optional[str]) -> Dict[str, Any]:
    if public_token:
        return {"params": {"public_token": public_token}, "headers": {}}
    if token:
        return {"params": {}, "headers": {"Authorization": f"Token {token}"}}
    raise BaserowError("A Baserow token or public token is required")


def list_rows(
    base_url: str,
    table_id: int,
    *,
    token: Optional[str] = None,
    public_token: Optional[str] = None,
    page: int = 1,
    size: int = PAGE_SIZE,
    timeout: int = 15,
) -> Dict[str, Any]:
    """Fetch a single page of rows using human readable field names."""
    auth = _auth(token, public_token)
    params = {"user_field_names": "true", "size": size, "page": page, **auth["params"]}
    url = f"{base_url.rstrip('/')}/database/rows/table/{table_id}/"
    response = _SESSION.get(url, params=params, headers=auth["headers"], timeout=timeout)
    response.raise_for_status()
    try:
        payload = response.json()
    except ValueError as exc:
        raise BaserowError(f"Table {table_id} returned a non-JSON response") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        logger.error("list_rows failed: table=%s, payload=%s", table_id, str(payload)[:200])
        raise BaserowError(f"Invalid API response structure for table {table_id}")
    return payload


def fetch_all_rows(
    base_url: str,
    table_id: int,
    *,
    token: Optional[str] = None,
    public_token: Optional[str] = None,
    timeout: int = 15,
    max_pages: int = MAX_PAGES,
) -> List[Dict[str, Any]]:
    """Follow ``next`` links until the table is exhausted."""
    rows: List[Dict[str, Any]] = []
    page = 1
    while page <= max_pages:
        payload = list_rows(
            base_url,
            table_id,
            token=token,
            public_token=public_token,
            page=page,
            timeout=timeout,
        )
        results = payload["results"]
        rows.extend(results)
        logger.info("Fetched %d rows on page %d of table %s (total %d)", len(results), page, table_id, len(rows))
        if not payload.get("next") or not results:
            break
        page += 1
    else:
        logger.warning("Stopped paging table %s after %d pages", table_id, max_pages)

    return rows
