"""Canonical gallery directory read API."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
from typing import Optional, List

from gallery_pipeline.models.base import get_db
from gallery_pipeline.services.directory_store import DirectoryStore

router = APIRouter()


class DirectoryGalleryResponse(BaseModel):
    gallery_id: str
    match_key: Optional[str] = None
    name: str
    country: str
    city: str
    website: Optional[str] = None
    bio: Optional[str] = None
    source_portals: List[str] = Field(default_factory=list)
    source_url: Optional[str] = None
    external_email: Optional[str] = None
    instagram: Optional[str] = None
    founded_year: Optional[int] = None
    space_size: Optional[str] = None
    quality_score: int

    class Config:
        from_attributes = True


@router.get("", response_model=List[DirectoryGalleryResponse])
async def list_directory(db: AsyncSession = Depends(get_db)):
    """All canonical galleries, best quality first."""
    return await db.run_sync(lambda session: DirectoryStore(session).list_all())


@router.get("/{gallery_id}", response_model=DirectoryGalleryResponse)
async def get_directory_gallery(gallery_id: str, db: AsyncSession = Depends(get_db)):
    gallery = await db.run_sync(lambda session: DirectoryStore(session).get_by_id(gallery_id))
    if gallery is None:
        raise HTTPException(status_code=404, detail="Gallery not found")
    return gallery
