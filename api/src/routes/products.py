from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict

from api.src.db.database import get_db
from orchestrator.src.models.queries import product_catalogue, products_query

router = APIRouter(tags=["products"])

@router.get("/subos", response_model=Dict[str, str])
async def list_products(db: AsyncSession = Depends(get_db)):
    """Product catalogue as a code to name map."""
    result = await db.execute(products_query())
    return product_catalogue(result.scalars().all())
