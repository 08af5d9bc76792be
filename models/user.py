from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, DateTime, String, JSON, Text

from utils.security import utcnow


class User(BaseModel, Base):
    __tablename__ = "users"
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    roles = Column(JSON, nullable=False, default=list)

    # Disabled until the email address is verified
    enabled = Column(Boolean, nullable=False, default=False)
    email_verified = Column(Boolean, nullable=False, default=False)

    # Expiries are naive UTC
    verification_token = Column(String(128), nullable=True)
    verification_token_expiry = Column(DateTime, nullable=True)
    password_reset_token = Column(String(128), nullable=True)
    password_reset_token_expiry = Column(DateTime, nullable=True)

    # Access tokens issued before this instant no longer authenticate
    credentials_changed_at = Column(DateTime, nullable=False, default=utcnow)

    full_name = Column(String(100), nullable=True)
    bio = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def __repr__(self):
        return f"<User username={self.username}>"
