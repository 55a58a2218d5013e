"""Gateways that carry vendor requests: the relay service or direct HTTPS."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from config import Config
from models.errors import NetworkError
from models.vendor import JSON_BODY_VENDORS, Action, VendorType, resolve_endpoint
from utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class RelayRequest(BaseModel):
    """One vendor call as understood by the relay."""

    platform: VendorType
    test_mode: bool
    action: Action = Action.CREATE
    invoice_type: str = "B2C"
    data: Any = None

    def to_wire(self) -> dict:
        return {
            "platform": self.platform.value,
            "test_mode": self.test_mode,
            "action": self.action.value,
            "invoice_type": self.invoice_type,
            "data": self.data,
        }


class Gateway(ABC):
    """Transport used by the adapters. Returns the vendor's raw response."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the gateway.

        Args:
            timeout: Per-call timeout in seconds (defaults to Config.REQUEST_TIMEOUT)
            client: Shared httpx client; one is created on first use if omitted
        """
        self.timeout = timeout if timeout is not None else Config.REQUEST_TIMEOUT
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def send(
        self, request: RelayRequest, cancel: Optional[CancellationToken] = None
    ) -> Any:
        """
        Perform the call, racing it against abort and the timeout.

        Raises:
            NetworkError: Transport failure, timeout or relay fault
            OperationAborted: The cancellation context was aborted
        """
        cancel = cancel or CancellationToken()
        return await cancel.run(self._send(request), timeout=self.timeout)

    @abstractmethod
    async def _send(self, request: RelayRequest) -> Any:
        pass


def _decode_body(response: httpx.Response) -> Any:
    """JSON-decode when possible, otherwise return the text (XML vendors)."""
    text = response.text
    try:
        return json.loads(text)
    except ValueError:
        return text


class RelayClient(Gateway):
    """Posts requests to the relay service, which forwards them to the vendor."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, client=client)
        self.base_url = base_url or Config.RELAY_URL

    async def _send(self, request: RelayRequest) -> Any:
        try:
            response = await self.client.post(self.base_url, json=request.to_wire())
        except httpx.TimeoutException as e:
            raise NetworkError(f"Relay request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Relay request failed: {e}") from e

        payload = _decode_body(response)

        if response.status_code >= 400:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise NetworkError(
                f"Relay returned HTTP {response.status_code}: {message or response.reason_phrase}"
            )

        if not isinstance(payload, dict):
            raise NetworkError("Relay returned a non-JSON response")

        if not payload.get("success"):
            raise NetworkError(payload.get("error") or "Relay call failed")

        return payload.get("response")


class DirectGateway(Gateway):
    """Posts straight to the vendor endpoint, doing the relay's job in-process."""

    async def _send(self, request: RelayRequest) -> Any:
        url = resolve_endpoint(
            request.platform, request.test_mode, request.action, request.invoice_type
        )
        if not url:
            raise NetworkError(
                f"No {request.action.value} endpoint for {request.platform.value}"
            )

        logger.debug(f"POST {url}")
        try:
            if request.platform in JSON_BODY_VENDORS:
                response = await self.client.post(url, json=request.data)
            else:
                response = await self.client.post(url, data=request.data)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Vendor request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Vendor request failed: {e}") from e

        if response.status_code >= 400:
            raise NetworkError(
                f"{request.platform.value} returned HTTP {response.status_code}"
            )

        return _decode_body(response)


def build_gateway(
    use_relay: Optional[bool] = None, client: Optional[httpx.AsyncClient] = None
) -> Gateway:
    """Create the gateway selected by ``Config.USE_RELAY``."""
    use_relay = Config.USE_RELAY if use_relay is None else use_relay
    if use_relay:
        return RelayClient(client=client)
    return DirectGateway(client=client)
