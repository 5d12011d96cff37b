"""
Code generation API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.dependencies import get_current_user, get_db_read, get_db_write, rate_limit_generations
from app.schemas.generation import EstimateRequest, EstimateResponse, GenerateRequest, GenerationResult
from app.schemas.user import CurrentUser
from app.services.credits.manager import CreditManager
from app.services.credits.pricing import calculate_generation_cost
from app.services.generation.orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=GenerationResult, dependencies=[Depends(rate_limit_generations)])
async def generate_code(
    request: GenerateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_write)
):
    """
    Generate code from a prompt.

    Cost: 1 credit (2 for advanced), +1 with tests, +1 with a framework.
    Credits are only charged when code is returned.
    """
    orchestrator = GenerationOrchestrator(db)
    return await orchestrator.generate(
        user_id=current_user.id,
        prompt=request.prompt,
        language=request.language,
        complexity=request.complexity.value,
        include_tests=request.include_tests,
        include_comments=request.include_comments,
        framework=request.framework,
    )


@router.post("/estimate", response_model=EstimateResponse)
async def estimate_cost(
    request: EstimateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_read)
):
    """Quote the cost of a generation with the given options."""
    cost = calculate_generation_cost(request.complexity.value, request.include_tests, request.framework)
    balance = await CreditManager.get_balance(current_user.id, db)
    return EstimateResponse(
        credits_required=cost,
        current_balance=balance,
        sufficient=balance >= cost,
    )
