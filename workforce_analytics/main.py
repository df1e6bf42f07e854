# workforce_analytics/main.py

# FastAPI application entrypoint for the workforce analytics service.
# Includes health and report routers, structured logging and the error envelope.
# On startup, probes the deployed schema once and keeps the capability descriptor on app.state;
# the mirrored tables are only created when AUTO_CREATE_SCHEMA is set (local dev).

import structlog
from fastapi import FastAPI
from workforce_analytics.api.health import router as health_router
from workforce_analytics.api.report import router as report_router
from workforce_analytics.config import settings
from workforce_analytics.db import Base, engine
from workforce_analytics.errors import register_error_handlers
from workforce_analytics.logging import RequestIdMiddleware, setup_logging
from workforce_analytics.services.schema import SchemaProbe, probe_capabilities
import workforce_analytics.models  # important: registers tables

setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="Workforce Analytics", version="0.1.0")
app.add_middleware(RequestIdMiddleware)
register_error_handlers(app)
app.include_router(health_router, tags=["health"])
app.include_router(report_router, tags=["report"])

@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        if settings.AUTO_CREATE_SCHEMA:
            await conn.run_sync(Base.metadata.create_all)
        caps = await probe_capabilities(SchemaProbe(conn))
    app.state.capabilities = caps
    logger.info(
        "schema_capabilities_probed",
        fingerprint=caps.fingerprint,
        backend=engine.dialect.name,
        missing_required=caps.missing_required(),
    )

@app.get("/")
async def root():
    return {"status": "ok", "see": ["/healthz", "/debug/capabilities", "/reports/technician-efficiency"]}
