"""
Модуль с маршрутами API приложения
"""
from fastapi import APIRouter

from chat_relay.api.routes import file_routes
from chat_relay.api.routes import message_routes
from chat_relay.api.routes import monitoring_routes
from chat_relay.api.routes import websocket_routes

# Создаем основной роутер API
api_router = APIRouter()

# Включаем все необходимые роутеры
api_router.include_router(message_routes.router)
api_router.include_router(file_routes.router)
api_router.include_router(file_routes.media_router)
api_router.include_router(monitoring_routes.router)
api_router.include_router(websocket_routes.router)
