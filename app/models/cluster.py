# app/models/cluster.py
import enum

from sqlalchemy import Column, String, Text, LargeBinary, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class ClusterStatus(str, enum.Enum):
    PENDING = "pending"
    CONNECTED = "connected"
    ERROR = "error"


class Cluster(BaseModel):
    __tablename__ = "clusters"
    __table_args__ = (
        UniqueConstraint("project_id", "name", name="uq_cluster_project_name"),
    )

    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    endpoint = Column(String(255), nullable=True)
    version = Column(String(64), nullable=True)

    # Kubeconfig chiffré, jamais sérialisé
    kubeconfig_encrypted = Column(LargeBinary, nullable=False)

    # Statut de la sonde de connectivité
    status = Column(
        Enum(ClusterStatus, name="cluster_status", native_enum=False, length=20,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ClusterStatus.PENDING,
    )
    status_message = Column(Text, nullable=True)

    project = relationship("Project", back_populates="clusters")

    applications = relationship(
        "Application",
        back_populates="cluster",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Cluster(name='{self.name}', status={self.status.value if self.status else None})>"

    def to_dict(self):
        """Convertit le modèle en dictionnaire (sans le kubeconfig)"""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "endpoint": self.endpoint,
            "version": self.version,
            "status": self.status.value if self.status else None,
            "status_message": self.status_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
