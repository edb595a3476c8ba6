"""HTTP client for the receipt collection API."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from receipt_interceptor.exceptions import (
    DeliveryError,
    DeliveryHttpError,
    DeliveryTimeoutError,
)

if TYPE_CHECKING:
    from receipt_interceptor.models import ParsedReceipt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class DeliveryClient:
    """Send receipts, registration and health probes to the collection API.

    Success is decided by status code alone: a 2xx answer whose body is not
    a JSON object is reported as ``{"status": "ok"}``.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        api_key: str,
        terminal_id: str,
        version: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.terminal_id = terminal_id
        self.version = version
        self.timeout = timeout
        self._client = httpx.Client(
            base_url=self.endpoint, timeout=timeout, transport=transport
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> DeliveryClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def configured(self) -> bool:
        return bool(self.endpoint)

    def send(
        self,
        path: str,
        payload: dict[str, Any] | None = None,
        method: str = "POST",
    ) -> dict[str, Any]:
        """Issue one authenticated request and return the decoded body.

        GET requests carry the payload as query parameters, all others as a
        JSON body.

        Raises:
            DeliveryTimeoutError: no response within ``timeout``.
            DeliveryHttpError: non-2xx status.
            DeliveryError: any other transport failure.
        """
        method = method.upper()
        url = f"{self.endpoint}{path}"
        kwargs: dict[str, Any] = {"headers": self._headers()}
        if method == "GET":
            kwargs["params"] = payload or None
        elif payload is not None:
            kwargs["json"] = payload

        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise DeliveryTimeoutError(url, self.timeout) from exc
        except httpx.HTTPError as exc:
            msg = f"Request to {url} failed: {exc}"
            raise DeliveryError(msg, endpoint=url) from exc

        if not response.is_success:
            raise DeliveryHttpError(url, response.status_code, response.text)

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {"status": "ok"}
        if not isinstance(body, dict):
            return {"status": "ok"}
        return body

    def health(self) -> dict[str, Any]:
        return self.send("/health", {"terminalId": self.terminal_id}, "GET")

    def register(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.send("/register", payload, "POST")

    def send_receipt(self, receipt: ParsedReceipt) -> dict[str, Any]:
        return self.send("/receipt", receipt.to_payload(), "POST")

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-Terminal-ID": self.terminal_id,
            "X-Interceptor-Version": self.version,
            "User-Agent": f"ReceiptInterceptor/{self.version}",
        }
