"""
Relay connection tracker.

Keeps the client's view of the relay: whether the upstream model server is
reachable, which models it offers and which one is selected. Health checks
are retried with exponential backoff.

Dependencies: httpx, chatbox.configs
System role: Client connection state (status, models, selected model)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import httpx

from chatbox.client.chat_store import ChatStore
from chatbox.configs.client import ClientSettings
from chatbox.models.chat import Chat
from chatbox.models.ollama import OllamaModel
from chatbox.observability.log_utils import log_with_context

logger = logging.getLogger(__name__)

HEALTH_PATH = "/api/ollama/health"
TAGS_PATH = "/api/ollama/tags"


class ConnectionStatus(str, Enum):
    """Reachability of the upstream model server as seen through the relay."""

    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class RelayConnection:
    """
    Health, model list and model selection for one relay.

    Attributes:
        status: Current connection status
        models: Models reported by the last successful fetch
        selected_model: Name of the model new messages are sent to
        connection_retries: Failed health checks since the last success
        error: Last error text, None after a success
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize connection tracker.

        Args:
            settings: Client settings (defaults from the environment)
            transport: Optional httpx transport, used by tests
            sleep: Coroutine used to wait between health check attempts
        """
        self.settings = settings or ClientSettings()
        self._transport = transport
        self._sleep = sleep

        self.status = ConnectionStatus.CHECKING
        self.models: list[OllamaModel] = []
        self.selected_model: str | None = None
        self.connection_retries = 0
        self.error: str | None = None

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.relay_base_url,
            timeout=self.settings.request_timeout,
            transport=self._transport,
        )

    async def check_health(self) -> ConnectionStatus:
        """
        Ask the relay whether the upstream model server is reachable.

        Returns:
            ConnectionStatus: CONNECTED on HTTP 200, DISCONNECTED otherwise
        """
        self.status = ConnectionStatus.CHECKING
        try:
            async with self._client() as client:
                response = await client.get(HEALTH_PATH)
        except httpx.HTTPError as e:
            self._mark_disconnected(str(e) or "Failed to connect to relay")
            return self.status

        if response.status_code == 200:
            self.status = ConnectionStatus.CONNECTED
            self.error = None
            self.connection_retries = 0
            logger.info("Upstream model server reachable", extra={"relay_url": self.settings.relay_base_url})
        else:
            self._mark_disconnected(_error_text(response, "Unknown health check issue"))
        return self.status

    async def fetch_models(self) -> list[OllamaModel]:
        """
        Load the model list from the relay.

        Returns:
            list[OllamaModel]: Available models ([] on failure, with error set)
        """
        try:
            async with self._client() as client:
                response = await client.get(TAGS_PATH)
        except httpx.HTTPError as e:
            self.error = str(e) or "Failed to fetch models"
            logger.warning("Model list request failed", extra={"error_msg": self.error})
            return []

        if response.status_code != 200:
            self.error = _error_text(response, "Failed to fetch models")
            logger.warning(
                "Model list request rejected",
                extra={"status_code": response.status_code, "error_msg": self.error},
            )
            return []

        payload = response.json()
        entries = payload.get("models", []) if isinstance(payload, dict) else payload
        self.models = [OllamaModel.model_validate(entry) for entry in entries]
        self.error = None
        logger.info("Fetched model list", extra={"model_count": len(self.models)})
        return self.models

    async def wait_until_connected(self) -> bool:
        """
        Check health until connected or out of retries.

        Waits 2**retries seconds (capped) between failed attempts.

        Returns:
            bool: True once connected, False after max_connection_retries failures
        """
        while True:
            if await self.check_health() is ConnectionStatus.CONNECTED:
                return True
            if self.connection_retries >= self.settings.max_connection_retries:
                logger.error(
                    "Giving up on relay health checks",
                    extra={"retries": self.connection_retries, "error_msg": self.error},
                )
                return False
            await self._sleep(self.backoff_delay())

    def backoff_delay(self) -> float:
        """Seconds to wait before the next health check attempt."""
        return min(2.0 ** self.connection_retries, self.settings.max_backoff_seconds)

    async def select_model(self, model_name: str, store: ChatStore) -> Chat:
        """
        Select a model and make sure one of its conversations is active.

        Args:
            model_name: Model to send new messages to
            store: Conversation store

        Returns:
            Chat: Active conversation for the model
        """
        self.selected_model = model_name
        logger.info("Model selected", extra={"model": model_name})
        return await store.ensure_active_chat(model_name)

    def _mark_disconnected(self, error: str) -> None:
        self.status = ConnectionStatus.DISCONNECTED
        self.error = error
        self.connection_retries += 1
        log_with_context(
            logger,
            logging.WARNING,
            "Upstream model server unreachable",
            retries=self.connection_retries,
            error_msg=error,
        )


def _error_text(response: httpx.Response, default: str) -> str:
    """Pull a readable error out of a relay JSON error body."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        return body.get("error") if isinstance(body.get("error"), str) else body.get("message") or default
    return default
