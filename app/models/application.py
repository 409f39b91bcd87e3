# app/models/application.py
import enum

from sqlalchemy import Column, String, Integer, Boolean, Text, JSON, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class AppStatus(str, enum.Enum):
    CREATED = "created"
    PENDING = "pending"
    DEPLOYING = "deploying"
    RUNNING = "running"
    FAILED = "failed"
    ROLLING_BACK = "rolling_back"


class DomainStatus(str, enum.Enum):
    PROVISIONING = "provisioning"
    ACTIVE = "active"


# Champs de configuration copiés dans chaque révision
CONFIG_FIELDS = (
    "image",
    "replicas",
    "port",
    "env_vars",
    "cpu_request",
    "cpu_limit",
    "memory_request",
    "memory_limit",
    "health_path",
    "health_port",
    "health_initial_delay",
    "health_period",
    "hpa_enabled",
    "min_replicas",
    "max_replicas",
    "cpu_target",
    "memory_target",
    "domain",
)


def _enum(enum_cls, name):
    return Enum(enum_cls, name=name, native_enum=False, length=20,
                values_callable=lambda e: [m.value for m in e])


class Application(BaseModel):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("cluster_id", "namespace", "name", name="uq_application_cluster_namespace_name"),
    )

    cluster_id = Column(String(36), ForeignKey("clusters.id", ondelete="CASCADE"), nullable=False, index=True)

    # Identité Kubernetes
    name = Column(String(63), nullable=False)
    namespace = Column(String(63), nullable=False, default="default")

    # Conteneur
    image = Column(String(512), nullable=False)
    replicas = Column(Integer, nullable=False, default=1)
    port = Column(Integer, nullable=True)
    env_vars = Column(JSON, nullable=False, default=dict)

    # Ressources
    cpu_request = Column(String(32), nullable=False, default="100m")
    cpu_limit = Column(String(32), nullable=False, default="500m")
    memory_request = Column(String(32), nullable=False, default="128Mi")
    memory_limit = Column(String(32), nullable=False, default="256Mi")

    # Health check
    health_path = Column(String(255), nullable=True)
    health_port = Column(Integer, nullable=True)
    health_initial_delay = Column(Integer, nullable=True)
    health_period = Column(Integer, nullable=True)

    # Autoscaling
    hpa_enabled = Column(Boolean, nullable=False, default=False)
    min_replicas = Column(Integer, nullable=True)
    max_replicas = Column(Integer, nullable=True)
    cpu_target = Column(Integer, nullable=True)
    memory_target = Column(Integer, nullable=True)

    # Domaine
    domain = Column(String(253), nullable=True, unique=True)
    domain_status = Column(_enum(DomainStatus, "domain_status"), nullable=True)

    # Statut
    current_revision = Column(Integer, nullable=False, default=0)
    status = Column(_enum(AppStatus, "app_status"), nullable=False, default=AppStatus.CREATED)
    status_message = Column(Text, nullable=True)

    # Relations
    cluster = relationship("Cluster", back_populates="applications")
    revisions = relationship(
        "Revision",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="Revision.revision_number.desc()",
    )
    secrets = relationship(
        "Secret",
        back_populates="application",
        cascade="all, delete-orphan",
    )

    @property
    def secret_bundle_name(self) -> str:
        return f"{self.name}-secrets"

    @property
    def tls_secret_name(self) -> str:
        return f"{self.name}-tls"

    def config(self) -> dict:
        """Retourne les champs de configuration courants"""
        values = {field: getattr(self, field) for field in CONFIG_FIELDS}
        values["env_vars"] = dict(values["env_vars"] or {})
        return values

    def __repr__(self):
        return f"<Application(name='{self.name}', namespace='{self.namespace}', status={self.status})>"

    def to_dict(self):
        """Convertit le modèle en dictionnaire"""
        data = {
            "id": self.id,
            "cluster_id": self.cluster_id,
            "name": self.name,
            "namespace": self.namespace,
            **self.config(),
            "domain_status": self.domain_status.value if self.domain_status else None,
            "current_revision": self.current_revision,
            "status": self.status.value if self.status else None,
            "status_message": self.status_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        return data
