"""HTTP client for the Virtual Room backend with error classification."""

from typing import Any, Optional

import httpx
import structlog

from virtualroom.services.exceptions import (
    AlreadySavedError,
    AuthError,
    ConflictError,
    NetworkError,
    NotFoundError,
    PermanentError,
    RateLimitError,
    RequestValidationError,
    ServiceUnavailableError,
)

logger = structlog.get_logger(__name__)

ALREADY_SAVED_CODE = "already_saved"


class ApiClient:
    """Thin wrapper over httpx.AsyncClient speaking the backend's JSON envelope.

    Every endpoint answers ``{"success": bool, "data": ..., "error": str, "code": str}``.
    Methods return the unwrapped ``data`` and raise a classified ServiceError
    on any failure.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize API client.

        Args:
            base_url: Backend API root (e.g., "http://localhost:3001/api")
            token: Bearer token for authenticated endpoints (empty for none)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.timeout = timeout
        self.http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("POST", path, json=json)

    async def delete(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("DELETE", path, params=params)

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send a request and unwrap the response envelope.

        Returns:
            The envelope's ``data`` member (None when absent)

        Raises:
            TransientError: Network timeout, connection failure, 429, 5xx
            PermanentError: 400/401/403/404/409/422, or ``success: false``
        """
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        try:
            response = await self.http.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timeout after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Network error: {e}") from e

        body = _decode(response)
        if response.is_error:
            raise classify_response(response.status_code, body, response.text)

        if isinstance(body, dict) and "success" in body:
            if not body["success"]:
                raise PermanentError(body.get("error") or f"{method} {path} failed")
            return body.get("data")
        return body


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def classify_response(status_code: int, body: Any, text: str) -> Exception:
    """Map an error response to the service error hierarchy.

    Args:
        status_code: HTTP status of the response
        body: Decoded JSON body, or None if it was not JSON
        text: Raw response text (used when the body has no error message)

    Returns:
        Classified ServiceError subclass instance

    Classification rules:
        - 429 -> RateLimitError (transient)
        - 5xx -> ServiceUnavailableError (transient)
        - 401/403 -> AuthError
        - 404 -> NotFoundError
        - 409 with code "already_saved" -> AlreadySavedError
        - 409 -> ConflictError
        - 400/422 -> RequestValidationError
        - Other 4xx -> PermanentError
    """
    message = text
    code = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message") or text
        code = body.get("code")

    if status_code == 429:
        return RateLimitError(f"Rate limit exceeded: {message}")
    if status_code >= 500:
        return ServiceUnavailableError(f"Service unavailable ({status_code}): {message}")
    if status_code in (401, 403):
        return AuthError(f"Not authorized ({status_code}): {message}")
    if status_code == 404:
        return NotFoundError(f"Not found: {message}")
    if status_code == 409:
        if code == ALREADY_SAVED_CODE:
            return AlreadySavedError(f"Already saved: {message}", code=code)
        return ConflictError(f"Conflict: {message}", code=code)
    if status_code in (400, 422):
        return RequestValidationError(f"Bad request: {message}")
    return PermanentError(f"Request failed ({status_code}): {message}")
