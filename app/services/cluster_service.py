import logging
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from app.core.database import session_scope
from app.core.errors import ConflictError, NotFoundError, ValidationError, WorkerStoppedError
from app.external.eks import generate_eks_kubeconfig
from app.models.cluster import Cluster, ClusterStatus
from app.repositories.cluster_repository import ClusterRepository
from app.repositories.project_repository import ProjectRepository
from app.services.credential_manager import CredentialManager
from app.workers.deployment_worker import DeploymentWorker

logger = logging.getLogger(__name__)

DEFAULT_AWS_REGION = "us-west-2"


class ClusterService:
    """Enregistrement et sonde de connectivité des clusters"""

    def __init__(self, session_factory: sessionmaker, credential_manager: CredentialManager,
                 worker: DeploymentWorker, aws_region: str = DEFAULT_AWS_REGION):
        self.session_factory = session_factory
        self.credentials = credential_manager
        self.worker = worker
        self.aws_region = aws_region

    def resolve_kubeconfig(self, kubeconfig: Optional[str] = None,
                           aws_cluster_name: Optional[str] = None,
                           aws_endpoint: Optional[str] = None,
                           aws_ca_data: Optional[str] = None,
                           aws_region: Optional[str] = None) -> str:
        """
        Kubeconfig fourni tel quel, ou généré pour une connexion directe EKS

        Le kubeconfig explicite est prioritaire. Sinon aws_cluster_name
        demande la génération, qui exige aws_endpoint et aws_ca_data; la
        région par défaut est celle de la configuration.
        """
        if kubeconfig and kubeconfig.strip():
            return kubeconfig

        if aws_cluster_name and aws_cluster_name.strip():
            if not aws_endpoint or not aws_ca_data:
                raise ValidationError("aws_endpoint and aws_ca_data are required for AWS EKS connection")
            return generate_eks_kubeconfig(
                aws_cluster_name.strip(),
                aws_endpoint,
                aws_ca_data,
                aws_region or self.aws_region,
            )

        raise ValidationError("either kubeconfig or aws_cluster_name is required")

    def register_cluster(self, project_id: str, name: str, kubeconfig: Optional[str] = None,
                         aws_cluster_name: Optional[str] = None, aws_endpoint: Optional[str] = None,
                         aws_ca_data: Optional[str] = None, aws_region: Optional[str] = None) -> Cluster:
        """Chiffre et enregistre un cluster, puis lance la sonde en arrière-plan"""
        name = (name or "").strip()
        if not name:
            raise ValidationError("cluster name is required")

        encrypted = self.credentials.encrypt_credential(self.resolve_kubeconfig(
            kubeconfig, aws_cluster_name, aws_endpoint, aws_ca_data, aws_region
        ))

        with session_scope(self.session_factory) as db:
            if ProjectRepository(db).get_by_id(project_id) is None:
                raise NotFoundError(f"project {project_id} not found")
            repo = ClusterRepository(db)
            if repo.get_by_name(project_id, name):
                raise ConflictError(f"cluster {name} already exists in project {project_id}")
            cluster = repo.create({
                "project_id": project_id,
                "name": name,
                "kubeconfig_encrypted": encrypted,
                "status": ClusterStatus.PENDING,
            })

        try:
            self.worker.submit(f"probe-cluster-{cluster.id}", self._probe, cluster.id)
        except WorkerStoppedError as e:
            self._mark(cluster.id, ClusterStatus.ERROR, f"failed to schedule connectivity probe: {e}")
            raise
        logger.info(f"Cluster {cluster.name} enregistré, sonde de connectivité lancée")
        return cluster

    def _mark(self, cluster_id: str, status: ClusterStatus, message: Optional[str] = None) -> None:
        with session_scope(self.session_factory) as db:
            repo = ClusterRepository(db)
            cluster = repo.get_by_id(cluster_id)
            if cluster is not None:
                repo.update(cluster, {"status": status, "status_message": message})

    def _probe(self, cluster_id: str) -> None:
        """Vérifie la connectivité et enregistre le résultat"""
        with session_scope(self.session_factory) as db:
            repo = ClusterRepository(db)
            cluster = repo.get_by_id(cluster_id)
            if cluster is None:
                logger.warning(f"Cluster {cluster_id} supprimé avant la sonde")
                return

            try:
                with self.credentials.connect(cluster) as api:
                    info = self.credentials.probe(api)
            except Exception as e:
                logger.warning(f"Sonde du cluster {cluster.name} en échec: {e}")
                repo.update(cluster, {"status": ClusterStatus.ERROR, "status_message": str(e)})
                return

            repo.update(cluster, {
                "status": ClusterStatus.CONNECTED,
                "status_message": None,
                "endpoint": info["endpoint"],
                "version": info["version"],
            })
            logger.info(f"Cluster {cluster.name} connecté (version {info['version']})")

    def list_clusters(self, project_id: str) -> List[Cluster]:
        with session_scope(self.session_factory) as db:
            if ProjectRepository(db).get_by_id(project_id) is None:
                raise NotFoundError(f"project {project_id} not found")
            return ClusterRepository(db).list_for_project(project_id)

    def get_cluster(self, cluster_id: str) -> Cluster:
        with session_scope(self.session_factory) as db:
            cluster = ClusterRepository(db).get_by_id(cluster_id)
        if cluster is None:
            raise NotFoundError(f"cluster {cluster_id} not found")
        return cluster

    def delete_cluster(self, cluster_id: str) -> None:
        """Supprime un cluster et, en cascade, ses applications"""
        with session_scope(self.session_factory) as db:
            repo = ClusterRepository(db)
            cluster = repo.get_by_id(cluster_id)
            if cluster is None:
                raise NotFoundError(f"cluster {cluster_id} not found")
            repo.delete(cluster)
            logger.info(f"Cluster {cluster.name} supprimé")
