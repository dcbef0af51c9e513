from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from cinema_booking.crud.catalog import crud_catalog
from cinema_booking.db.session import get_db_session
from cinema_booking.models import User


async def get_current_user(
        x_user_identity: str = Header(..., alias="X-User-Identity",
                                      description="Email of the caller, resolved by the upstream auth layer"),
        db: AsyncSession = Depends(get_db_session)) -> User:
    return await crud_catalog.get_user_by_identity(db, x_user_identity)


async def get_optional_user(
        x_user_identity: Optional[str] = Header(None, alias="X-User-Identity"),
        db: AsyncSession = Depends(get_db_session)) -> Optional[User]:
    # anonymous callers are priced as adults
    if not x_user_identity:
        return None
    return await crud_catalog.get_user_by_identity(db, x_user_identity)
