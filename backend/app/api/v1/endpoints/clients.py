from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from app.api.v1.errors import to_http_error
from app.core.dependencies import get_client_registry, require_admin
from app.models.auth import UserInfo
from app.models.client import Client, ClientCreateRequest
from app.services.client_service import ClientService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("", response_model=list[Client])
async def list_clients(registry: ClientService = Depends(get_client_registry)):  # noqa: B008
    try:
        return await registry.list_clients()
    except Exception as err:
        raise to_http_error(err, "retrieve clients") from err


@router.post("", response_model=Client, status_code=status.HTTP_201_CREATED)
async def add_client(
    body: ClientCreateRequest,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    registry: ClientService = Depends(get_client_registry),  # noqa: B008
):
    try:
        return await registry.add_client(body.name)
    except Exception as err:
        raise to_http_error(err, "add client") from err


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: str,
    user: UserInfo = Depends(require_admin),  # noqa: B008
    registry: ClientService = Depends(get_client_registry),  # noqa: B008
):
    try:
        await registry.delete_client(client_id)
    except Exception as err:
        raise to_http_error(err, "delete client") from err
