"""
RefreshToken model: the persisted, revocable half of a session.
Fields:
- token (opaque random string, unique)
- user_id (String(36)) - FK to users.id, unique: one row per user at most
- expires_at (naive UTC)
"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(128), nullable=False, unique=True, index=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User")

    def __repr__(self):
        return f"<RefreshToken user_id={self.user_id} expires_at={self.expires_at}>"
