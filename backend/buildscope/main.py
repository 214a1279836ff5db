import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from buildscope.dependencies import get_settings
from buildscope.errors import register_exception_handlers
from buildscope.routers import chat, daily_reports, error_reports, lessons, projects, uploads


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="BuildScope", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(projects.router)
    app.include_router(chat.router)
    app.include_router(lessons.router)
    app.include_router(daily_reports.router)
    app.include_router(uploads.router)
    app.include_router(error_reports.router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
