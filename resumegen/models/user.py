from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from typing import Optional
from resumegen.database import Base
import secrets
import bcrypt

# Plaintext characters kept beside the hash so auth can narrow candidates by index
KEY_PREFIX_LENGTH = 8


class User(Base):
    """A candidate. Authenticates with an API key stored only as a bcrypt hash."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)

    api_key = Column(String, unique=True, nullable=True)
    api_key_prefix = Column(String(KEY_PREFIX_LENGTH), nullable=True, index=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    profile = relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    applications = relationship("Application", back_populates="user", cascade="all, delete-orphan")

    @staticmethod
    def key_prefix(api_key: str) -> str:
        return api_key[:KEY_PREFIX_LENGTH]

    def issue_api_key(self) -> str:
        """Replace this user's key. Returns the plaintext, which is never stored."""
        plaintext = secrets.token_urlsafe(32)
        self.api_key = bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        self.api_key_prefix = self.key_prefix(plaintext)
        return plaintext

    def check_api_key(self, candidate: Optional[str]) -> bool:
        if not candidate or not self.api_key:
            return False
        try:
            return bcrypt.checkpw(candidate.encode("utf-8"), self.api_key.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False
