from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.schemas import UserCreate, UserResponse
from conduit.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])

@router.post("", status_code=201, response_model=UserResponse)
async def create_user(data: UserCreate, db: AsyncSession = Depends(get_db)):
    # Duplicate username/email surfaces as Conflict (409) from the service.
    return await user_service.create_user(db, data)
