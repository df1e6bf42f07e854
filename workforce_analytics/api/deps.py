# workforce_analytics/api/deps.py

# FastAPI dependencies shared by the report routes.
# The caller is resolved by the authentication gateway in front of this service
# and forwarded as X-User-Id / X-User-Role / X-Business-Unit-Id headers
# (or placed on request.state.caller by an in-process auth middleware).
# Capabilities are probed once and cached on app.state.

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_analytics.db import get_session
from workforce_analytics.services.schema import SchemaCapabilities, SchemaProbe, probe_capabilities
from workforce_analytics.services.scope import Caller
from workforce_analytics.utils.dates import Clock, SystemClock


def get_caller(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_business_unit_id: Optional[int] = Header(default=None),
) -> Caller:
    caller = getattr(request.state, "caller", None)
    if caller is not None:
        return caller
    if not x_user_id:
        raise HTTPException(status_code=401, detail="not authenticated")
    return Caller(id=x_user_id, role=x_user_role, business_unit_id=x_business_unit_id)


async def get_capabilities(request: Request, session: AsyncSession = Depends(get_session)) -> SchemaCapabilities:
    caps = getattr(request.app.state, "capabilities", None)
    if caps is None:
        # startup probe did not run (e.g. DB was down); probe once now
        conn = await session.connection()
        caps = await probe_capabilities(SchemaProbe(conn))
        request.app.state.capabilities = caps
    return caps


def get_clock() -> Clock:
    return SystemClock()
