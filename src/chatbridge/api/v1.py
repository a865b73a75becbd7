"""v1 роутер: собирает эндпоинты в один APIRouter."""

from fastapi import APIRouter

from chatbridge.api.v1_chat import router as chat_router

router = APIRouter()
router.include_router(chat_router)
