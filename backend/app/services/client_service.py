"""Client registry stored in its own Cosmos DB container."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from azure.cosmos.aio import CosmosClient
from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceNotFoundError

from app.core.config import Settings
from app.models.client import Client

logger = logging.getLogger(__name__)


class ClientServiceError(Exception):
    pass


class ClientNotFoundError(ClientServiceError):
    pass


class InvalidClientNameError(ClientServiceError):
    pass


class DuplicateClientError(ClientServiceError):
    pass


class ClientRegistryNotInitializedError(ClientServiceError):
    pass


class ClientService:
    def __init__(self) -> None:
        self.client: CosmosClient | None = None
        self.container: Any = None
        self.initialized: bool = False

    async def initialize(self, settings: Settings) -> None:
        if self.initialized:
            return

        if not settings.COSMOS_DB_ENDPOINT or not settings.COSMOS_DB_KEY:
            logger.warning("Cosmos DB credentials missing — ClientService not initialized")
            return

        self.client = CosmosClient(settings.COSMOS_DB_ENDPOINT, settings.COSMOS_DB_KEY)
        db = self.client.get_database_client(settings.COSMOS_DB_DATABASE)
        self.container = db.get_container_client(settings.COSMOS_DB_CLIENTS_CONTAINER)
        self.initialized = True
        logger.info("ClientService initialized (container=%s)", settings.COSMOS_DB_CLIENTS_CONTAINER)

    async def close(self) -> None:
        if self.client:
            await self.client.close()
            self.client = None
            self.container = None
            self.initialized = False

    def _require_container(self) -> Any:
        if not self.container:
            raise ClientRegistryNotInitializedError("Client registry not initialized")
        return self.container

    async def list_clients(self) -> list[Client]:
        container = self._require_container()
        clients: list[Client] = []
        try:
            async for item in container.query_items(
                query="SELECT c.id, c.name FROM c ORDER BY c.name ASC",
                enable_cross_partition_query=True,
            ):
                clients.append(Client(id=item["id"], name=item.get("name", "")))
        except CosmosHttpResponseError as e:
            raise ClientServiceError(f"Could not load clients: {e.message}") from e
        return clients

    async def add_client(self, name: str) -> Client:
        name = (name or "").strip()
        if not name:
            raise InvalidClientNameError("Client name cannot be empty.")

        existing = await self.list_clients()
        if any(c.name.lower() == name.lower() for c in existing):
            raise DuplicateClientError(f'Client "{name}" already exists.')

        container = self._require_container()
        client = Client(id=str(uuid.uuid4()), name=name)
        try:
            await container.create_item(body=client.model_dump())
        except CosmosHttpResponseError as e:
            raise ClientServiceError(f"Could not add client: {e.message}") from e
        logger.info("Added client %s (%s)", name, client.id)
        return client

    async def delete_client(self, client_id: str) -> None:
        container = self._require_container()
        try:
            await container.delete_item(item=client_id, partition_key=client_id)
        except CosmosResourceNotFoundError as e:
            raise ClientNotFoundError(f"Client {client_id} not found") from e
        except CosmosHttpResponseError as e:
            raise ClientServiceError(f"Could not delete client: {e.message}") from e
        logger.info("Deleted client %s", client_id)

    async def check_connection(self) -> bool:
        if not self.container:
            return False
        try:
            async for _ in self.container.query_items(
                query="SELECT VALUE COUNT(1) FROM c",
                enable_cross_partition_query=True,
            ):
                return True
            return True
        except Exception:
            logger.exception("Client registry connection check failed")
            return False


client_service = ClientService()
