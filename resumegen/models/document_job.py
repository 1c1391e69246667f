"""
SQLAlchemy model for the document_jobs table, a durable job queue for resume rendering.
"""
from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from datetime import datetime, timezone
from resumegen.database import Base
import uuid


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    FAILED = "FAILED"


class DocumentJob(Base):
    __tablename__ = "document_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    template = Column(String(50), nullable=False, default="default")
    document_id = Column(String(36), ForeignKey("generated_documents.id"), nullable=True, index=True)

    # Status: QUEUED → PROCESSING → DONE | FAILED
    status = Column(String(20), nullable=False, default=JobStatus.QUEUED.value, index=True)
    error_message = Column(Text, nullable=True)

    # Python-side default keeps sub-second precision for FIFO ordering on SQLite
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
