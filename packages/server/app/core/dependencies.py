"""
FastAPI dependencies resolving the lifecycle-scoped services on ``app.state``.
"""

from fastapi import Request

from app.services.ingestion import WebhookIngestionGateway
from app.services.onboarding import SubscriptionOrchestrator
from app.services.store import CharityStore


def get_store(request: Request) -> CharityStore:
    return request.app.state.store


def get_orchestrator(request: Request) -> SubscriptionOrchestrator:
    return request.app.state.orchestrator


def get_gateway(request: Request) -> WebhookIngestionGateway:
    return request.app.state.gateway
