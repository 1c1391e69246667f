from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from resumegen.database import Base

class Application(Base):
    """
    Job application submitted by a candidate.
    The per-user count gates resume generation; the latest few appear on the resume.
    """
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    job_title = Column(String, nullable=False)
    company_name = Column(String, nullable=False)

    # Statuses: 'applied', 'screening', 'interviewing', 'offer', 'rejected', 'withdrawn'
    status = Column(String, nullable=False, default='applied')

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    user = relationship("User", back_populates="applications")
