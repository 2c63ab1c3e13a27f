"""Validation lookups for listing feeds."""
from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from gallery_pipeline.models.base import get_db
from gallery_pipeline.services.open_call_validation import get_validation_map, should_hide_open_call

router = APIRouter()


class ValidationMapRequest(BaseModel):
    ids: List[str] = Field(default_factory=list)


class ValidationEntry(BaseModel):
    status: str
    reason: Optional[str] = None
    confidence: int = 0
    checked_at: datetime
    hidden: bool = False


@router.post("/validations", response_model=Dict[str, ValidationEntry])
async def open_call_validations(payload: ValidationMapRequest, db: AsyncSession = Depends(get_db)):
    """Latest verdict per listing id. Ids never validated are left out."""
    validations = await db.run_sync(lambda session: get_validation_map(session, payload.ids))
    return {
        open_call_id: ValidationEntry(
            status=result.status,
            reason=result.reason,
            confidence=result.confidence,
            checked_at=result.checked_at,
            hidden=should_hide_open_call(result),
        )
        for open_call_id, result in validations.items()
    }
