from __future__ import annotations

from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.core.settings import S
from app.metrics import metrics_endpoint, metrics_middleware, set_app_info
from app.routers.auth import router as auth_router
from app.routers.content import router as content_router
from app.routers.creators import router as creators_router
from app.routers.misc import router as misc_router
from app.routers.subscriptions import router as subscriptions_router
from app.routers.users import router as users_router
from app.routers.webhooks import router as webhooks_router
from app.services.media import using_local_storage

def create_app() -> FastAPI:
    app = FastAPI(title="Creator Platform API", version="0.1.0")

    if using_local_storage():
        media_dir = Path(S.local_media_dir)
        media_dir.mkdir(parents=True, exist_ok=True)
        app.mount("/uploads", StaticFiles(directory=media_dir), name="uploads")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if S.metrics_enabled:
        app.middleware("http")(metrics_middleware)
        set_app_info(app.title, app.version)
        app.get("/metrics")(metrics_endpoint)

    app.include_router(auth_router)
    app.include_router(content_router)
    app.include_router(creators_router)
    app.include_router(subscriptions_router)
    app.include_router(users_router)
    app.include_router(webhooks_router)
    app.include_router(misc_router)

    return app

app = create_app()

def run() -> None:
    uvicorn.run("app.main:app", host=S.host, port=S.port)
