"""NotificationSettings model - per-user alert delivery preferences."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.clock import utcnow
from ..utils.crypto import EncryptedString


class NotificationSettings(Base):
    """Alert channels enabled for a user. At most one row per user."""

    __tablename__ = "notification_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    email_address = Column(String, nullable=True)  # Overrides the account email
    push_enabled = Column(Boolean, nullable=False, default=False)
    push_user_key = Column(String, nullable=True)
    push_api_token = Column(EncryptedString, nullable=True)  # Encrypted at rest
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationship
    user = relationship("User", back_populates="notification_settings")

    def __repr__(self) -> str:
        # Credentials are deliberately left out
        return (
            f"<NotificationSettings user_id={self.user_id} "
            f"email_enabled={self.email_enabled} push_enabled={self.push_enabled}>"
        )
