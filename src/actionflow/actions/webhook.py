"""``webhook`` action - HTTP request via httpx.

A non-2xx response fails the action with ``"HTTP <status>"``; a transport
error (DNS, connect, timeout) fails it with ``"Webhook failed: <reason>"``.
The engine applies no timeout of its own; the client's transport timeout
is the only bound.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from actionflow.core.errors import ActionConfigError, ActionExecutionError
from actionflow.core.logging import get_logger
from actionflow.orchestration.models import ActionType

from .base import ActionResult, BaseActionHandler, describe_error, require_text

logger = get_logger(__name__)

METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD")
_MAX_RESPONSE_TEXT = 2000


@dataclass
class WebhookParams:
    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


class WebhookHandler(BaseActionHandler[WebhookParams]):
    """Config: ``url``, ``method`` (default POST), ``headers``, ``body``.

    Pass ``client`` to share a connection pool (or a mock transport in
    tests); otherwise a short-lived client is created per request.
    """

    action_type = ActionType.WEBHOOK

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self.client = client
        self.timeout = timeout

    def validate(self, config: Mapping[str, Any]) -> WebhookParams:
        url = require_text(config, "url")
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            raise ActionConfigError(f"Invalid webhook url: {url!r}", key="url") from exc
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ActionConfigError(f"Webhook url must be http(s): {url!r}", key="url")

        method = str(config.get("method") or "POST").upper()
        if method not in METHODS:
            raise ActionConfigError(f"Unsupported HTTP method: {method}", key="method")

        headers = config.get("headers") or {}
        if not isinstance(headers, Mapping):
            raise ActionConfigError("'headers' must be a mapping", key="headers")

        return WebhookParams(
            url=url,
            method=method,
            headers={str(k): str(v) for k, v in headers.items()},
            body=config.get("body"),
        )

    def _request_kwargs(self, params: WebhookParams) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"headers": params.headers}
        if params.body is None or params.method in ("GET", "HEAD"):
            return kwargs
        if isinstance(params.body, (str, bytes)):
            kwargs["content"] = params.body
        else:
            kwargs["json"] = params.body
        return kwargs

    async def _send(self, params: WebhookParams) -> httpx.Response:
        kwargs = self._request_kwargs(params)
        if self.client is not None:
            return await self.client.request(params.method, params.url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(params.method, params.url, **kwargs)

    @staticmethod
    def _response_payload(response: httpx.Response) -> Any:
        if "json" in response.headers.get("content-type", ""):
            try:
                return response.json()
            except ValueError:
                pass
        return response.text[:_MAX_RESPONSE_TEXT]

    async def perform(self, params: WebhookParams, context: Mapping[str, Any]) -> ActionResult:
        try:
            response = await self._send(params)
        except httpx.RequestError as exc:
            logger.warning("webhook.transport_error", url=params.url, error=describe_error(exc))
            raise ActionExecutionError(
                f"Webhook failed: {describe_error(exc)}", cause=exc
            ) from exc

        if not response.is_success:
            raise ActionExecutionError(f"HTTP {response.status_code}").with_context(
                url=params.url, method=params.method
            )

        return ActionResult(
            message=f"Webhook {params.method} {params.url} returned {response.status_code}",
            output={
                "status": response.status_code,
                "method": params.method,
                "url": params.url,
                "response": self._response_payload(response),
            },
        )
