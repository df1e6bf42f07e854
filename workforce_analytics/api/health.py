# workforce_analytics/api/health.py

# Health check and debug endpoints.
# /healthz → verifies DB connectivity by running "SELECT 1".
# /debug/capabilities → the schema capability descriptor reports are built against.

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from workforce_analytics.api.deps import get_capabilities
from workforce_analytics.db import get_session
from workforce_analytics.services.schema import SchemaCapabilities

router = APIRouter()

@router.get("/healthz")
async def healthz(session: AsyncSession = Depends(get_session)):
    await session.execute(text("SELECT 1"))
    return {"ok": True}

@router.get("/debug/capabilities")
async def debug_capabilities(capabilities: SchemaCapabilities = Depends(get_capabilities)):
    return capabilities.describe()
