from abc import ABC, abstractmethod
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from app.core.errors import ClusterError, ClusterConnectionError

logger = logging.getLogger(__name__)

KIND_NAMESPACE = "namespace"
KIND_DEPLOYMENT = "deployment"
KIND_SERVICE = "service"
KIND_HPA = "hpa"
KIND_INGRESS = "ingress"
KIND_SECRET = "secret"

KINDS = (KIND_NAMESPACE, KIND_DEPLOYMENT, KIND_SERVICE, KIND_HPA, KIND_INGRESS, KIND_SECRET)


class ClusterAPI(ABC):
    """
    Accès minimal à l'API d'un cluster Kubernetes

    Les objets manipulés sont les modèles du client officiel
    (V1Deployment, V1Service, ...). `get` retourne None quand la ressource
    n'existe pas; toute autre erreur lève ClusterError avec le code HTTP.
    """

    @abstractmethod
    def get(self, kind: str, name: str, namespace: Optional[str] = None) -> Optional[Any]:
        ...

    @abstractmethod
    def create(self, kind: str, body: Any, namespace: Optional[str] = None) -> Any:
        ...

    @abstractmethod
    def replace(self, kind: str, name: str, body: Any, namespace: Optional[str] = None) -> Any:
        ...

    @abstractmethod
    def delete(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        """Supprime une ressource. Retourne False si elle n'existait pas."""

    @abstractmethod
    def list_pods(self, namespace: str, label_selector: str) -> List[Any]:
        ...

    @abstractmethod
    def stream_pod_logs(self, name: str, namespace: str, follow: bool = False,
                        tail_lines: Optional[int] = None) -> Iterator[bytes]:
        """Ouvre le flux de logs d'un pod; les erreurs sont levées à l'ouverture"""

    @abstractmethod
    def server_version(self) -> str:
        ...

    @abstractmethod
    def first_node_external_address(self) -> Optional[str]:
        ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class K8sClient(ClusterAPI):
    """Implémentation de ClusterAPI au-dessus du client kubernetes officiel"""

    def __init__(self, api_client: client.ApiClient):
        self.api_client = api_client
        self.v1 = client.CoreV1Api(api_client)
        self.apps_v1 = client.AppsV1Api(api_client)
        self.autoscaling_v2 = client.AutoscalingV2Api(api_client)
        self.networking_v1 = client.NetworkingV1Api(api_client)

    @classmethod
    def from_kubeconfig(cls, kubeconfig: bytes) -> "K8sClient":
        """Construit un client éphémère à partir d'un kubeconfig déchiffré"""
        try:
            config_dict = yaml.safe_load(kubeconfig)
        except yaml.YAMLError as e:
            raise ClusterConnectionError(f"failed to parse kubeconfig: {e}")

        if not isinstance(config_dict, dict):
            raise ClusterConnectionError("failed to parse kubeconfig: not a mapping")

        try:
            api_client = config.new_client_from_config_dict(config_dict)
        except (config.ConfigException, KeyError, TypeError, ValueError) as e:
            raise ClusterConnectionError(f"failed to load kubeconfig: {e}")

        return cls(api_client)

    def _operations(self, kind: str) -> Dict[str, Callable]:
        if kind == KIND_NAMESPACE:
            return {
                "read": lambda name, ns: self.v1.read_namespace(name),
                "create": lambda body, ns: self.v1.create_namespace(body),
                "replace": lambda name, body, ns: self.v1.replace_namespace(name, body),
                "delete": lambda name, ns: self.v1.delete_namespace(name),
            }
        if kind == KIND_DEPLOYMENT:
            api = self.apps_v1
            suffix = "namespaced_deployment"
        elif kind == KIND_SERVICE:
            api = self.v1
            suffix = "namespaced_service"
        elif kind == KIND_SECRET:
            api = self.v1
            suffix = "namespaced_secret"
        elif kind == KIND_HPA:
            api = self.autoscaling_v2
            suffix = "namespaced_horizontal_pod_autoscaler"
        elif kind == KIND_INGRESS:
            api = self.networking_v1
            suffix = "namespaced_ingress"
        else:
            raise ValueError(f"unsupported resource kind: {kind}")

        return {
            "read": lambda name, ns: getattr(api, f"read_{suffix}")(name, ns),
            "create": lambda body, ns: getattr(api, f"create_{suffix}")(ns, body),
            "replace": lambda name, body, ns: getattr(api, f"replace_{suffix}")(name, ns, body),
            "delete": lambda name, ns: getattr(api, f"delete_{suffix}")(name, ns),
        }

    @staticmethod
    def _call(description: str, func: Callable, *args):
        try:
            return func(*args)
        except ApiException as e:
            raise ClusterError(f"{description}: {e.reason} ({e.status})", status=e.status)
        except Urllib3HTTPError as e:
            raise ClusterConnectionError(f"{description}: {e}")

    def get(self, kind: str, name: str, namespace: Optional[str] = None) -> Optional[Any]:
        try:
            return self._call(f"get {kind} {name}", self._operations(kind)["read"], name, namespace)
        except ClusterError as e:
            if e.is_not_found:
                return None
            raise

    def create(self, kind: str, body: Any, namespace: Optional[str] = None) -> Any:
        return self._call(f"create {kind}", self._operations(kind)["create"], body, namespace)

    def replace(self, kind: str, name: str, body: Any, namespace: Optional[str] = None) -> Any:
        return self._call(f"update {kind} {name}", self._operations(kind)["replace"], name, body, namespace)

    def delete(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        try:
            self._call(f"delete {kind} {name}", self._operations(kind)["delete"], name, namespace)
            return True
        except ClusterError as e:
            if e.is_not_found:
                return False
            raise

    def list_pods(self, namespace: str, label_selector: str) -> List[Any]:
        pods = self._call(
            "list pods",
            lambda: self.v1.list_namespaced_pod(namespace, label_selector=label_selector),
        )
        return list(pods.items)

    def stream_pod_logs(self, name: str, namespace: str, follow: bool = False,
                        tail_lines: Optional[int] = None) -> Iterator[bytes]:
        kwargs = {"follow": follow, "_preload_content": False}
        if tail_lines:
            kwargs["tail_lines"] = tail_lines

        response = self._call(
            f"stream logs {name}",
            lambda: self.v1.read_namespaced_pod_log(name, namespace, **kwargs),
        )
        return self._iter_response(response)

    @staticmethod
    def _iter_response(response) -> Iterator[bytes]:
        try:
            for chunk in response.stream(4096):
                yield chunk
        finally:
            response.release_conn()

    def server_version(self) -> str:
        info = self._call("get server version", lambda: client.VersionApi(self.api_client).get_code())
        return info.git_version

    def first_node_external_address(self) -> Optional[str]:
        nodes = self._call("list nodes", lambda: self.v1.list_node(limit=1))
        for node in nodes.items:
            for address in (node.status.addresses or []):
                if address.type == "ExternalIP":
                    return address.address
        return None

    def close(self) -> None:
        try:
            self.api_client.close()
        except Exception as e:
            logger.debug(f"Erreur lors de la fermeture du client Kubernetes: {e}")
