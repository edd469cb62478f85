"""
Portfolio endpoints: totals and a combined WBS across the caller's projects.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import portfolio as portfolio_service
from prereq_shared.schemas.portfolio import PortfolioSummary, PortfolioTree

router = APIRouter()


@router.get("/summary", response_model=PortfolioSummary)
async def get_summary(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await portfolio_service.get_summary(session, user.id)


@router.get("/wbs", response_model=PortfolioTree)
async def get_portfolio_wbs(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Portfolio node -> project nodes -> each project's WBS."""
    return await portfolio_service.get_portfolio_tree(session, user.id)
