import logging
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

EKS_USER = "shipit"
EXEC_API_VERSION = "client.authentication.k8s.io/v1beta1"


def build_eks_kubeconfig(cluster_name: str, endpoint: str, ca_data: str, region: str) -> Dict[str, Any]:
    """
    Kubeconfig d'un cluster EKS authentifié par `aws eks get-token`

    Le jeton est obtenu à chaque requête par le plugin exec, via les
    credentials IRSA/OIDC du pod qui exécute le service.
    """
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{
            "name": cluster_name,
            "cluster": {
                "server": endpoint,
                "certificate-authority-data": ca_data,
            },
        }],
        "contexts": [{
            "name": cluster_name,
            "context": {"cluster": cluster_name, "user": EKS_USER},
        }],
        "current-context": cluster_name,
        "users": [{
            "name": EKS_USER,
            "user": {
                "exec": {
                    "apiVersion": EXEC_API_VERSION,
                    "command": "aws",
                    "args": [
                        "--region", region,
                        "eks", "get-token",
                        "--cluster-name", cluster_name,
                        "--output", "json",
                    ],
                },
            },
        }],
    }


def generate_eks_kubeconfig(cluster_name: str, endpoint: str, ca_data: str, region: str) -> str:
    """Sérialise le kubeconfig EKS en YAML, prêt à être chiffré"""
    logger.debug(f"Génération du kubeconfig EKS pour {cluster_name} ({region})")
    return yaml.safe_dump(
        build_eks_kubeconfig(cluster_name, endpoint, ca_data, region),
        default_flow_style=False,
        sort_keys=False,
    )
