"""
Generation history API endpoints.
"""

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db_read, get_db_write
from app.schemas.generation import GenerationResponse, GenerationVisibilityUpdate
from app.schemas.user import CurrentUser
from app.services.generation.history import GenerationHistory

router = APIRouter()


class GenerationListResponse(BaseModel):
    """Paginated generations."""
    total: int
    page: int
    page_size: int
    generations: List[GenerationResponse]


class LikeResponse(BaseModel):
    id: str
    like_count: int


@router.get("", response_model=GenerationListResponse)
async def list_generations(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    language: Optional[str] = Query(None, description="Filter by language"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    """The caller's generations, newest first."""
    generations, total = await GenerationHistory.list_for_user(
        current_user.id, db, limit=page_size, offset=(page - 1) * page_size, language=language
    )
    return GenerationListResponse(
        total=total,
        page=page,
        page_size=page_size,
        generations=[GenerationResponse.model_validate(g) for g in generations],
    )


@router.get("/public", response_model=GenerationListResponse)
async def list_public_generations(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    """Generations shared by any user, most liked first."""
    generations, total = await GenerationHistory.list_public(db, limit=page_size, offset=(page - 1) * page_size)
    return GenerationListResponse(
        total=total,
        page=page,
        page_size=page_size,
        generations=[GenerationResponse.model_validate(g) for g in generations],
    )


@router.get("/{generation_id}", response_model=GenerationResponse)
async def get_generation(
    generation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    generation = await GenerationHistory.get(generation_id, current_user.id, db)
    return GenerationResponse.model_validate(generation)


@router.patch("/{generation_id}", response_model=GenerationResponse)
async def update_visibility(
    generation_id: str,
    request: GenerationVisibilityUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_write)
):
    """Share or unshare a generation."""
    generation = await GenerationHistory.set_visibility(generation_id, current_user.id, request.is_public, db)
    return GenerationResponse.model_validate(generation)


@router.delete("/{generation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_generation(
    generation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_write)
):
    await GenerationHistory.delete(generation_id, current_user.id, db)


@router.post("/{generation_id}/like", response_model=LikeResponse)
async def like_generation(
    generation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_write)
):
    like_count = await GenerationHistory.like(generation_id, db)
    return LikeResponse(id=generation_id, like_count=like_count)
