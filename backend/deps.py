"""
Shared FastAPI dependencies.

Collaborators (repository, WhatsApp client, dispatcher, workflow) are built
here and handed to routers explicitly, so tests can swap any of them through
app.dependency_overrides.
"""

from __future__ import annotations

from fastapi import Depends

from config import Settings, settings
from database import async_session
from services.notification_service import NotificationDispatcher
from services.order_repository import OrderRepository
from services.order_workflow import OrderSubmissionWorkflow
from services.whatsapp_client import WhatsAppClient


def get_settings() -> Settings:
    return settings


def get_repository() -> OrderRepository:
    return OrderRepository(async_session)


def get_whatsapp_client(app_settings: Settings = Depends(get_settings)) -> WhatsAppClient:
    return WhatsAppClient(app_settings)


def get_dispatcher(
    repository: OrderRepository = Depends(get_repository),
    client: WhatsAppClient = Depends(get_whatsapp_client),
    app_settings: Settings = Depends(get_settings),
) -> NotificationDispatcher:
    return NotificationDispatcher(repository, client, app_settings)


def get_workflow(
    repository: OrderRepository = Depends(get_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    app_settings: Settings = Depends(get_settings),
) -> OrderSubmissionWorkflow:
    return OrderSubmissionWorkflow(repository, dispatcher, app_settings)
