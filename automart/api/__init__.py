# automart/api/__init__.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from automart.api.routers import catalog, health, orders


def create_app():
    app = FastAPI(title="AutoMart locker shop", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health.router)
    app.include_router(catalog.router)
    app.include_router(orders.router)
    return app
