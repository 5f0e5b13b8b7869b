from datetime import datetime, timezone

from fastapi import FastAPI

from app.core.config import Settings, get_settings
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging
from app.routers import jobs, models
from app.services.broker import KafkaBroker
from app.services.dead_letter import DeadLetterReader
from app.services.registry import JobStore, ModelStore
from app.workers.runner import JobRunner


def create_app(
    settings: Settings | None = None,
    broker: KafkaBroker | None = None,
    job_store: JobStore | None = None,
    model_store: ModelStore | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title=settings.app_name, debug=settings.debug)
    register_exception_handlers(app)

    broker = broker or KafkaBroker.from_settings(settings)
    job_store = job_store if job_store is not None else JobStore()
    model_store = model_store if model_store is not None else ModelStore()

    app.state.settings = settings
    app.state.broker = broker
    app.state.job_store = job_store
    app.state.model_store = model_store
    app.state.job_runner = JobRunner(broker, settings)
    app.state.dead_letter_reader = DeadLetterReader(
        broker,
        job_store,
        timeout_seconds=settings.dead_letter_read_timeout_seconds,
        prefix=settings.topic_prefix,
        dlq_suffix=settings.dlq_suffix,
    )

    app.include_router(models.router)
    app.include_router(jobs.router)

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await app.state.job_runner.shutdown()

    @app.get("/healthz")
    def healthz() -> dict:
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
