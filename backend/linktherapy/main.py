from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from linktherapy.core.config import settings
from linktherapy.core.database import SessionLocal, ensure_core_schema
from linktherapy.core.errors import setup_exception_handlers
from linktherapy.core.module_loader import collect_routers
from linktherapy.modules.users.bootstrap import ensure_default_admin


API_PREFIX = "/api"


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for noisy in ("httpx", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="LinkTherapy API", version="0.1.0", debug=settings.DEBUG)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_exception_handlers(app)

    routers = collect_routers()
    # Ensure DB schema is present before routes are registered
    ensure_core_schema()

    for router in routers:
        app.include_router(router, prefix=API_PREFIX)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        db = SessionLocal()
        try:
            ensure_default_admin(db)
        finally:
            db.close()

    return app


app = create_app()
