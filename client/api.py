# client/api.py
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

STATUS_MESSAGES = {
    401: "Unauthorized",
    403: "Access denied",
    404: "Resource not found",
    429: "Too many requests, please try again later",
    500: "Internal server error",
}


class ApiError(Exception):
    """Non-2xx response or transport failure; status 0 means no response."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class ApiClient:
    """
    Thin JSON client over httpx.

    - every path is relative to `prefix` (default /api)
    - bearer token attached while `token` is set; a 401 drops it
    - X-Device-Id attached from `device_id_provider`
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5001",
        *,
        prefix: str = "/api",
        http: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        device_id_provider: Optional[Callable[[], str]] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ) -> None:
        self.prefix = prefix.rstrip("/")
        self._http = http or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )
        self.token: Optional[str] = None
        self.device_id_provider = device_id_provider
        self.on_unauthorized = on_unauthorized

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    def _headers(self) -> dict[str, str]:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.device_id_provider is not None:
            headers["X-Device-Id"] = self.device_id_provider()
        return headers

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.prefix}{path}"
        try:
            resp = self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error("API request failed: %s %s: %s", method, url, e)
            raise ApiError(0, "Network error, please check your connection") from e

        if resp.is_success:
            return resp.json() if resp.content else None

        raise self._to_error(resp)

    def _to_error(self, resp: httpx.Response) -> ApiError:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        server_msg = None
        if isinstance(body, dict):
            server_msg = body.get("error") or body.get("message") or body.get("detail")

        status = resp.status_code
        logger.warning("API %s %s -> %d %s", resp.request.method, resp.request.url.path, status, server_msg)

        if status == 401:
            self.token = None
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            return ApiError(status, server_msg or STATUS_MESSAGES[401])
        if status == 400:
            return ApiError(status, server_msg or "Bad request")
        if status in STATUS_MESSAGES:
            return ApiError(status, STATUS_MESSAGES[status])
        return ApiError(status, server_msg or "Request failed")

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return self.request("PUT", path, json=json, **kwargs)

    def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return self.request("PATCH", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)
