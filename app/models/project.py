# app/models/project.py
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Project(BaseModel):
    __tablename__ = "projects"

    name = Column(String(255), unique=True, nullable=False, index=True)

    clusters = relationship(
        "Cluster",
        back_populates="project",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Project(name='{self.name}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
