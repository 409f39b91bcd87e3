import logging
from typing import Callable, Dict, Optional

from app.core import crypto
from app.core.errors import ClusterConnectionError, ClusterError, DecryptionError
from app.external.k8s_client import ClusterAPI, K8sClient
from app.models.cluster import Cluster

logger = logging.getLogger(__name__)

ClientFactory = Callable[[bytes], ClusterAPI]


class CredentialManager:
    """
    Gère les kubeconfigs chiffrés des clusters

    Aucun client n'est mis en cache: chaque appel à connect() construit un
    client éphémère que l'appelant doit fermer.
    """

    def __init__(self, encryption_key: str, client_factory: Optional[ClientFactory] = None):
        self.encryption_key = encryption_key
        self.client_factory = client_factory or K8sClient.from_kubeconfig

    def encrypt_credential(self, kubeconfig: str) -> bytes:
        """Chiffre un kubeconfig avant stockage"""
        return crypto.encrypt(kubeconfig.encode("utf-8"), self.encryption_key)

    def decrypt_credential(self, cluster: Cluster) -> bytes:
        """Déchiffre le kubeconfig d'un cluster"""
        try:
            return crypto.decrypt(cluster.kubeconfig_encrypted, self.encryption_key)
        except DecryptionError as e:
            logger.error(f"Impossible de déchiffrer le kubeconfig du cluster {cluster.name}: {e}")
            raise DecryptionError(f"failed to decrypt kubeconfig: {e}")

    def build_client(self, kubeconfig: bytes) -> ClusterAPI:
        """Construit un client à partir d'un kubeconfig en clair"""
        try:
            return self.client_factory(kubeconfig)
        except ClusterConnectionError:
            raise
        except ClusterError as e:
            raise ClusterConnectionError(str(e), status=e.status)

    def connect(self, cluster: Cluster) -> ClusterAPI:
        """Déchiffre le credential puis construit le client"""
        return self.build_client(self.decrypt_credential(cluster))

    @staticmethod
    def probe(api: ClusterAPI) -> Dict[str, str]:
        """Interroge la version du serveur et l'adresse externe du premier nœud"""
        version = api.server_version()
        endpoint = api.first_node_external_address() or "unknown"
        return {"version": version, "endpoint": endpoint}
