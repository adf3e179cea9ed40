from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import check_database, get_db

health_router = APIRouter(tags=["Health"])


@health_router.get("/health")
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """Liveness plus database reachability and broker registry stats."""
    database_ok = await check_database(db)
    broker = getattr(request.app.state, "broker", None)
    return {
        "status": "ok" if database_ok else "degraded",
        "database": "ok" if database_ok else "unavailable",
        "broker": {
            "connections": broker.connection_count if broker else 0,
            "destinations": broker.subscription_count if broker else 0,
        },
    }
