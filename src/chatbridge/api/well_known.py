"""Служебные эндпоинты: health/providers/metrics."""

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from chatbridge.api.v1_chat import get_store
from chatbridge.credentials import CredentialStore
from chatbridge.metrics import registry
from chatbridge.providers.registry import PROVIDERS

router = APIRouter()


@router.get("/healthz")
def healthz() -> dict:
    """Простой healthcheck: процесс жив."""
    return {"status": "ok"}


@router.get("/providers")
def providers(store: CredentialStore = Depends(get_store)) -> dict:
    """Какие провайдеры известны и для каких есть ключ (самих ключей не отдаём)."""
    return {
        "data": [
            {"id": p.value, "dialect": spec.dialect.value, "configured": p in store}
            for p, spec in PROVIDERS.items()
        ]
    }


@router.get("/metrics")
def metrics() -> Response:
    """Prometheus метрики."""
    data = generate_latest(registry)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
