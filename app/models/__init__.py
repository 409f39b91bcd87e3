from .base import BaseModel
from .project import Project
from .cluster import Cluster, ClusterStatus
from .application import Application, AppStatus, DomainStatus, CONFIG_FIELDS
from .revision import Revision
from .secret import Secret

__all__ = [
    "BaseModel",
    "Project",
    "Cluster",
    "ClusterStatus",
    "Application",
    "AppStatus",
    "DomainStatus",
    "CONFIG_FIELDS",
    "Revision",
    "Secret",
]
