from functools import lru_cache
from typing import Optional

from app.config import settings
from app.core.database import get_db_manager
from app.services.cluster_service import ClusterService
from app.services.credential_manager import CredentialManager
from app.services.deployment_service import DeploymentService
from app.services.project_service import ProjectService
from app.workers.deployment_worker import DeploymentWorker


# === WORKERS ===
_deployment_worker_instance: Optional[DeploymentWorker] = None


def get_deployment_worker() -> DeploymentWorker:
    """Factory pour le worker de déploiement (singleton)"""
    global _deployment_worker_instance
    if _deployment_worker_instance is None:
        _deployment_worker_instance = DeploymentWorker(max_workers=settings.DEPLOY_WORKERS)
    return _deployment_worker_instance


def shutdown_deployment_worker() -> None:
    """Arrête le worker et oublie l'instance"""
    global _deployment_worker_instance
    if _deployment_worker_instance is not None:
        _deployment_worker_instance.shutdown(wait_for_tasks=True)
        _deployment_worker_instance = None


# === SERVICES ===
@lru_cache()
def get_credential_manager() -> CredentialManager:
    return CredentialManager(settings.ENCRYPTION_KEY)


def get_project_service() -> ProjectService:
    """Factory pour le service des projets"""
    return ProjectService(session_factory=get_db_manager().session_factory)


def get_cluster_service() -> ClusterService:
    """Factory pour le service des clusters"""
    return ClusterService(
        session_factory=get_db_manager().session_factory,
        credential_manager=get_credential_manager(),
        worker=get_deployment_worker(),
        aws_region=settings.AWS_REGION,
    )


def get_deployment_service() -> DeploymentService:
    """Factory pour l'orchestrateur de déploiement"""
    return DeploymentService(
        session_factory=get_db_manager().session_factory,
        credential_manager=get_credential_manager(),
        worker=get_deployment_worker(),
        encryption_key=settings.ENCRYPTION_KEY,
        history_limit=settings.REVISION_HISTORY_LIMIT,
        ingress_class=settings.INGRESS_CLASS,
        cluster_issuer=settings.CLUSTER_ISSUER,
    )
