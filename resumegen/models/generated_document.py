"""
Generated resume metadata. The binary itself lives in S3 under `url`.
"""
from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from datetime import datetime, timezone
from resumegen.database import Base
import uuid


class DocumentStatus(str, Enum):
    PENDING = "PENDING"
    READY = "READY"


class GeneratedDocument(Base):
    __tablename__ = "generated_documents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Storage path inside the bucket; empty until the document is READY
    url = Column(String(1024), nullable=False, default="")
    template = Column(String(50), nullable=False, default="default")

    # Status: PENDING → READY
    status = Column(String(20), nullable=False, default=DocumentStatus.PENDING.value, index=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # Advisory only
