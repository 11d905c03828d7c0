from fastapi import APIRouter, Depends
from sqlmodel import text
from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.database import get_session
from storefront.utils.clock import utcnow

router = APIRouter()


@router.get("/check")
async def health_check(session: AsyncSession = Depends(get_session)):
    db_status = "ok"

    try:
        # simple DB ping
        await session.exec(text("SELECT 1"))
    except Exception:
        db_status = "failed"

    return {
        "status": "ok",
        "database": db_status,
        "timestamp": utcnow().isoformat()
    }
