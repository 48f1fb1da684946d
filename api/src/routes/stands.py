from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
import logging

from api.src.db.database import get_db
from api.src.models import Stand, User, StandCreate, StandResponse, UserResponse
from orchestrator.src.models.queries import stand_status_query

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stands"])

@router.post("/stands", response_model=StandResponse)
async def create_stand(request: StandCreate, db: AsyncSession = Depends(get_db)):
    """Queue a new stand for provisioning."""
    user = await db.get(User, request.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    result = await db.execute(select(Stand.id).where(Stand.name == request.name))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail=f"Stand {request.name} already exists")

    stand = Stand(
        name=request.name,
        user_id=request.user_id,
        products=request.products,
        ref=request.ref,
        status="created",
    )
    db.add(stand)
    await db.commit()
    await db.refresh(stand)

    logger.info(f"Stand {stand.name} queued for creation")
    return stand

@router.get("/stands", response_model=List[StandResponse])
async def list_stands(
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_db),
):
    """List stands, newest first."""
    query = select(Stand).order_by(Stand.created_at.desc(), Stand.id.desc())

    if status:
        query = query.where(Stand.status == status)

    query = query.limit(limit).offset(offset)

    result = await db.execute(query)
    return result.scalars().all()

@router.get("/stands/{name}/status")
async def get_stand_status(name: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(stand_status_query(name))
    status = result.scalar_one_or_none()

    if status is None:
        raise HTTPException(status_code=404, detail="Stand not found")

    return {"name": name, "status": status}

@router.get("/users", response_model=List[UserResponse])
async def list_users(db: AsyncSession = Depends(get_db)):
    """List all registered users."""
    result = await db.execute(select(User).order_by(User.name))
    return result.scalars().all()
