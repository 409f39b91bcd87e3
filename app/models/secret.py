# app/models/secret.py
from sqlalchemy import Column, String, LargeBinary, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class Secret(BaseModel):
    __tablename__ = "secrets"
    __table_args__ = (
        UniqueConstraint("app_id", "key", name="uq_secret_app_key"),
    )

    app_id = Column(String(36), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    key = Column(String(255), nullable=False)
    value_encrypted = Column(LargeBinary, nullable=False)

    application = relationship("Application", back_populates="secrets")

    def __repr__(self):
        return f"<Secret(app_id='{self.app_id}', key='{self.key}')>"

    def to_dict(self):
        """Jamais de valeur, ni en clair ni chiffrée"""
        return {
            "id": self.id,
            "key": self.key,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
