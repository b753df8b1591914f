"""Shared query helpers for the service layer."""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


async def paginate(session: AsyncSession, stmt, page: int, limit: int) -> dict[str, Any]:
    """Run stmt with LIMIT/OFFSET and return the standard list envelope.

    Returns:
        {"data": [...], "total": int, "page": int, "limit": int}
    """
    total = (
        await session.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    ).scalar_one()

    page = max(page, 1)
    result = await session.execute(stmt.limit(limit).offset((page - 1) * limit))
    return {
        "data": list(result.scalars().all()),
        "total": total,
        "page": page,
        "limit": limit,
    }
