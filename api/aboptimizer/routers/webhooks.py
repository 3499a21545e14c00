"""Webhook router: triggers winner analysis for a running A/B test."""

import logging
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from aboptimizer.core.database import get_db
from aboptimizer.core.security import get_current_shop
from aboptimizer.services.winner_analysis import WinnerAnalysisHandler
from aboptimizer.stats.errors import AnalysisError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class AnalyzeWinnerRequest(BaseModel):
    test_id: UUID


class AnalyzeWinnerResponse(BaseModel):
    status: Literal["skipped", "no_winner", "winner_declared"]
    reason: str | None = None
    detail: str | None = None
    winner: Literal["A", "B"] | None = None
    decision: str | None = None
    analysis: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_winner_handler(db: AsyncSession = Depends(get_db)) -> WinnerAnalysisHandler:
    return WinnerAnalysisHandler(db)


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------

@router.post("/analyze-winner", response_model=AnalyzeWinnerResponse, response_model_exclude_none=True)
async def analyze_winner(
    body: AnalyzeWinnerRequest,
    shop: str = Depends(get_current_shop),
    handler: WinnerAnalysisHandler = Depends(get_winner_handler),
) -> AnalyzeWinnerResponse:
    """Analyze an active test and declare a winner when the evidence is in.

    A declared winner completes the test; a variant win also moves the
    product onto the variant template.  ``no_winner`` leaves the test
    running so it can be analyzed again as events accumulate.
    """
    try:
        outcome = await handler.analyze_test(body.test_id)
    except AnalysisError as exc:
        logger.warning("Winner analysis rejected for test %s (shop %s): %s", body.test_id, shop, exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return AnalyzeWinnerResponse(**outcome)
