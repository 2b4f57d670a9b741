"""Thin JSON client for the /api routes."""
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import config

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised when an API request fails or cannot be sent."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiClient:
    """Issues requests against the API and decodes JSON responses.

    Pass an existing ``httpx.Client`` (for example FastAPI's ``TestClient``)
    together with the path prefix the routes are mounted under; otherwise a
    client pointed at ``config.api_base_url`` is created.
    """

    def __init__(self, client: Optional[httpx.Client] = None, prefix: str = ""):
        self._client = client or httpx.Client(
            base_url=config.api_base_url,
            timeout=config.api_timeout_seconds,
        )
        self._prefix = prefix.rstrip("/")

    def request(self, method: str, path: str, json: Any = None,
                params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self._prefix}{path}"
        try:
            response = self._client.request(method, url, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise ApiError(f"Request failed: {exc}") from exc

        if response.status_code >= 400:
            raise ApiError(
                f"API error ({response.status_code}): {_detail(response)}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Any = None) -> Any:
        return self.request("POST", path, json=body)

    def put(self, path: str, body: Any = None) -> Any:
        return self.request("PUT", path, json=body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def close(self):
        self._client.close()


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:400]
    detail = body.get("detail") if isinstance(body, dict) else body
    if isinstance(detail, list):
        # pydantic validation errors
        return "; ".join(str(item.get("msg", item) if isinstance(item, dict) else item) for item in detail)
    return str(detail or response.reason_phrase)
