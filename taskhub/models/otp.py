import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String

from taskhub.database import Base


class OtpEntry(Base):
    __tablename__ = "user_otps"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    email = Column(String(255), nullable=False)
    code = Column(String(10), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_user_otps_user_id", "user_id"),
        Index("idx_user_otps_email", "email"),
    )
