"""Open call listings (owned by the product) and their validation results."""
from datetime import datetime
import enum

from sqlalchemy import Column, Integer, String, DateTime, Boolean

from gallery_pipeline.models.base import Base


class ValidationStatus(str, enum.Enum):
    verified = "verified"
    suspicious = "suspicious"
    invalid = "invalid"
    unreachable = "unreachable"


class OpenCall(Base):
    """Listing row as written by the product. This pipeline only reads and prunes it."""

    __tablename__ = "open_calls"

    id = Column(String(64), primary_key=True)
    gallery_id = Column(String(255), nullable=True)
    gallery = Column(String(300), nullable=False)
    gallery_website = Column(String(1000), nullable=True)
    city = Column(String(150), nullable=True)
    country = Column(String(100), nullable=True)
    theme = Column(String(500), nullable=False, default="")
    deadline = Column(String(10), nullable=False)  # YYYY-MM-DD
    external_url = Column(String(1000), nullable=True)
    is_external = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class OpenCallValidation(Base):
    """Latest validation verdict for one listing. Each run overwrites the previous row."""

    __tablename__ = "open_call_validations"

    id = Column(Integer, primary_key=True, index=True)
    open_call_id = Column(String(64), nullable=False, unique=True)

    status = Column(String(20), nullable=False, default=ValidationStatus.suspicious.value, index=True)
    reason = Column(String(120), nullable=True)
    checked_url = Column(String(1000), nullable=True)
    http_status = Column(Integer, nullable=True)
    confidence = Column(Integer, nullable=False, default=0)

    checked_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
