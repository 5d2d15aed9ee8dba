import uuid

from sqlalchemy import Boolean, Column, DateTime, String, UniqueConstraint

from taskhub.database import Base


class IntegrationSettingEntry(Base):
    __tablename__ = "integration_settings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String(64), nullable=False, index=True)
    type = Column(String(16), nullable=False)
    webhook_url = Column(String(1000), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("project_id", "type", name="uq_integration_project_type"),
    )
