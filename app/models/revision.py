# app/models/revision.py
from sqlalchemy import Column, String, Integer, Boolean, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel
from .application import CONFIG_FIELDS


class Revision(BaseModel):
    """Snapshot immuable de la configuration d'une application"""
    __tablename__ = "revisions"
    __table_args__ = (
        UniqueConstraint("app_id", "revision_number", name="uq_revision_app_number"),
    )

    app_id = Column(String(36), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    revision_number = Column(Integer, nullable=False)

    image = Column(String(512), nullable=False)
    replicas = Column(Integer, nullable=False)
    port = Column(Integer, nullable=True)
    env_vars = Column(JSON, nullable=False, default=dict)

    cpu_request = Column(String(32), nullable=False)
    cpu_limit = Column(String(32), nullable=False)
    memory_request = Column(String(32), nullable=False)
    memory_limit = Column(String(32), nullable=False)

    health_path = Column(String(255), nullable=True)
    health_port = Column(Integer, nullable=True)
    health_initial_delay = Column(Integer, nullable=True)
    health_period = Column(Integer, nullable=True)

    hpa_enabled = Column(Boolean, nullable=False, default=False)
    min_replicas = Column(Integer, nullable=True)
    max_replicas = Column(Integer, nullable=True)
    cpu_target = Column(Integer, nullable=True)
    memory_target = Column(Integer, nullable=True)

    domain = Column(String(253), nullable=True)

    deployed_by = Column(String(255), nullable=True)

    application = relationship("Application", back_populates="revisions")

    def config(self) -> dict:
        values = {field: getattr(self, field) for field in CONFIG_FIELDS}
        values["env_vars"] = dict(values["env_vars"] or {})
        return values

    def __repr__(self):
        return f"<Revision(app_id='{self.app_id}', number={self.revision_number}, image='{self.image}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "app_id": self.app_id,
            "revision_number": self.revision_number,
            **self.config(),
            "deployed_by": self.deployed_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
