import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from kubernetes import client

from app.core.errors import ClusterError
from app.external.k8s_client import (
    ClusterAPI,
    KIND_DEPLOYMENT,
    KIND_HPA,
    KIND_INGRESS,
    KIND_NAMESPACE,
    KIND_SECRET,
    KIND_SERVICE,
)
from app.models.application import Application

logger = logging.getLogger(__name__)

MANAGED_BY = "shipit"
RESERVED_NAMESPACES = frozenset({"default", "kube-system", "kube-public"})

DEFAULT_HEALTH_INITIAL_DELAY = 10
DEFAULT_HEALTH_PERIOD = 30
DEFAULT_MIN_REPLICAS = 1
DEFAULT_MAX_REPLICAS = 10
DEFAULT_CPU_TARGET = 80
DEFAULT_INGRESS_PORT = 80


def app_labels(app: Application) -> Dict[str, str]:
    return {"app": app.name, "managed-by": MANAGED_BY}


def format_age(created: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Formate l'âge d'un pod (s, m, h, d)"""
    if created is None:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    seconds = max(0, int((now - created).total_seconds()))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


class ResourceReconciler:
    """
    Aligne les ressources du cluster sur la configuration d'une application

    Chaque ensure_* lit l'état courant puis crée ou remplace la ressource
    (resource_version reporté). Un 409 à la création est un succès, un 404 à
    la suppression aussi.
    """

    def __init__(self, api: ClusterAPI, ingress_class: str = "nginx",
                 cluster_issuer: str = "letsencrypt-prod"):
        self.api = api
        self.ingress_class = ingress_class
        self.cluster_issuer = cluster_issuer

    # === UPSERT GÉNÉRIQUE ===
    def _upsert(self, kind: str, body: Any, namespace: Optional[str],
                carry_over: Optional[Callable[[Any, Any], None]] = None) -> Any:
        name = body.metadata.name
        existing = self.api.get(kind, name, namespace)

        if existing is None:
            try:
                created = self.api.create(kind, body, namespace)
                logger.info(f"{kind} {namespace}/{name} créé")
                return created
            except ClusterError as e:
                if e.is_conflict:
                    logger.info(f"{kind} {namespace}/{name} déjà existant")
                    return body
                raise

        body.metadata.resource_version = existing.metadata.resource_version
        if carry_over is not None:
            carry_over(existing, body)
        updated = self.api.replace(kind, name, body, namespace)
        logger.info(f"{kind} {namespace}/{name} mis à jour")
        return updated

    def _delete(self, kind: str, name: str, namespace: Optional[str]) -> bool:
        deleted = self.api.delete(kind, name, namespace)
        if deleted:
            logger.info(f"{kind} {namespace}/{name} supprimé")
        return deleted

    # === NAMESPACE ===
    def ensure_namespace(self, namespace: str) -> None:
        """Crée le namespace s'il n'existe pas (best-effort)"""
        if namespace in RESERVED_NAMESPACES:
            return
        body = client.V1Namespace(
            metadata=client.V1ObjectMeta(name=namespace, labels={"managed-by": MANAGED_BY})
        )
        try:
            self.api.create(KIND_NAMESPACE, body)
            logger.info(f"Namespace {namespace} créé")
        except ClusterError as e:
            if not e.is_conflict:
                logger.warning(f"Impossible de créer le namespace {namespace}: {e}")

    # === SECRET BUNDLE ===
    def build_secret_bundle(self, app: Application, data: Dict[str, str]) -> client.V1Secret:
        return client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=app.secret_bundle_name,
                namespace=app.namespace,
                labels=app_labels(app),
            ),
            type="Opaque",
            string_data=dict(data),
        )

    def ensure_secret_bundle(self, app: Application, data: Dict[str, str]) -> str:
        """Injecte les secrets déchiffrés dans un Secret Opaque"""
        self._upsert(KIND_SECRET, self.build_secret_bundle(app, data), app.namespace)
        return app.secret_bundle_name

    def delete_secret_bundle(self, app: Application) -> bool:
        return self._delete(KIND_SECRET, app.secret_bundle_name, app.namespace)

    # === WORKLOAD ===
    def _build_probe(self, app: Application) -> Optional[client.V1Probe]:
        if not app.health_path:
            return None
        port = app.health_port or app.port
        if not port:
            return None
        return client.V1Probe(
            http_get=client.V1HTTPGetAction(path=app.health_path, port=port),
            initial_delay_seconds=(app.health_initial_delay if app.health_initial_delay is not None
                                   else DEFAULT_HEALTH_INITIAL_DELAY),
            period_seconds=app.health_period if app.health_period is not None else DEFAULT_HEALTH_PERIOD,
        )

    def build_workload(self, app: Application, secret_name: Optional[str] = None) -> client.V1Deployment:
        labels = app_labels(app)
        env = [client.V1EnvVar(name=key, value=str(value))
               for key, value in sorted((app.env_vars or {}).items())]

        container = client.V1Container(
            name=app.name,
            image=app.image,
            env=env or None,
            resources=client.V1ResourceRequirements(
                requests={"cpu": app.cpu_request, "memory": app.memory_request},
                limits={"cpu": app.cpu_limit, "memory": app.memory_limit},
            ),
        )
        if secret_name:
            container.env_from = [client.V1EnvFromSource(secret_ref=client.V1SecretEnvSource(name=secret_name))]
        if app.port:
            container.ports = [client.V1ContainerPort(container_port=app.port)]

        probe = self._build_probe(app)
        if probe is not None:
            container.liveness_probe = probe
            container.readiness_probe = probe

        return client.V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=client.V1ObjectMeta(name=app.name, namespace=app.namespace, labels=labels),
            spec=client.V1DeploymentSpec(
                replicas=app.replicas,
                selector=client.V1LabelSelector(match_labels={"app": app.name}),
                template=client.V1PodTemplateSpec(
                    metadata=client.V1ObjectMeta(labels=labels),
                    spec=client.V1PodSpec(containers=[container]),
                ),
            ),
        )

    def ensure_workload(self, app: Application, secret_name: Optional[str] = None) -> Any:
        """Crée ou met à jour le Deployment de l'application"""
        return self._upsert(KIND_DEPLOYMENT, self.build_workload(app, secret_name), app.namespace)

    def delete_workload(self, app: Application) -> bool:
        return self._delete(KIND_DEPLOYMENT, app.name, app.namespace)

    # === NETWORK ENDPOINT ===
    def build_network_endpoint(self, app: Application) -> client.V1Service:
        return client.V1Service(
            api_version="v1",
            kind="Service",
            metadata=client.V1ObjectMeta(name=app.name, namespace=app.namespace, labels=app_labels(app)),
            spec=client.V1ServiceSpec(
                type="ClusterIP",
                selector={"app": app.name},
                ports=[client.V1ServicePort(name="http", port=app.port, target_port=app.port, protocol="TCP")],
            ),
        )

    @staticmethod
    def _keep_cluster_ip(existing: client.V1Service, body: client.V1Service) -> None:
        if existing.spec is not None:
            body.spec.cluster_ip = existing.spec.cluster_ip

    def ensure_network_endpoint(self, app: Application) -> Optional[Any]:
        """Crée ou met à jour le Service; le supprime si l'application n'expose plus de port"""
        if not app.port:
            self._delete(KIND_SERVICE, app.name, app.namespace)
            return None
        return self._upsert(KIND_SERVICE, self.build_network_endpoint(app), app.namespace,
                            carry_over=self._keep_cluster_ip)

    def delete_network_endpoint(self, app: Application) -> bool:
        return self._delete(KIND_SERVICE, app.name, app.namespace)

    # === AUTOSCALER ===
    def build_autoscaler(self, app: Application) -> client.V2HorizontalPodAutoscaler:
        metrics = []
        if app.cpu_target:
            metrics.append(self._utilization_metric("cpu", app.cpu_target))
        if app.memory_target:
            metrics.append(self._utilization_metric("memory", app.memory_target))
        if not metrics:
            metrics.append(self._utilization_metric("cpu", DEFAULT_CPU_TARGET))

        return client.V2HorizontalPodAutoscaler(
            api_version="autoscaling/v2",
            kind="HorizontalPodAutoscaler",
            metadata=client.V1ObjectMeta(name=app.name, namespace=app.namespace, labels=app_labels(app)),
            spec=client.V2HorizontalPodAutoscalerSpec(
                scale_target_ref=client.V2CrossVersionObjectReference(
                    api_version="apps/v1", kind="Deployment", name=app.name
                ),
                min_replicas=app.min_replicas or DEFAULT_MIN_REPLICAS,
                max_replicas=app.max_replicas or DEFAULT_MAX_REPLICAS,
                metrics=metrics,
            ),
        )

    @staticmethod
    def _utilization_metric(resource: str, target: int) -> client.V2MetricSpec:
        return client.V2MetricSpec(
            type="Resource",
            resource=client.V2ResourceMetricSource(
                name=resource,
                target=client.V2MetricTarget(type="Utilization", average_utilization=target),
            ),
        )

    def ensure_autoscaler(self, app: Application) -> Optional[Any]:
        """Crée ou met à jour le HPA, ou le supprime si l'autoscaling est désactivé"""
        if not app.hpa_enabled:
            self.delete_autoscaler(app)
            return None
        return self._upsert(KIND_HPA, self.build_autoscaler(app), app.namespace)

    def delete_autoscaler(self, app: Application) -> bool:
        return self._delete(KIND_HPA, app.name, app.namespace)

    # === INGRESS ===
    def build_ingress(self, app: Application) -> client.V1Ingress:
        return client.V1Ingress(
            api_version="networking.k8s.io/v1",
            kind="Ingress",
            metadata=client.V1ObjectMeta(
                name=app.name,
                namespace=app.namespace,
                labels=app_labels(app),
                annotations={
                    "cert-manager.io/cluster-issuer": self.cluster_issuer,
                    "nginx.ingress.kubernetes.io/ssl-redirect": "true",
                },
            ),
            spec=client.V1IngressSpec(
                ingress_class_name=self.ingress_class,
                tls=[client.V1IngressTLS(hosts=[app.domain], secret_name=app.tls_secret_name)],
                rules=[
                    client.V1IngressRule(
                        host=app.domain,
                        http=client.V1HTTPIngressRuleValue(paths=[
                            client.V1HTTPIngressPath(
                                path="/",
                                path_type="Prefix",
                                backend=client.V1IngressBackend(
                                    service=client.V1IngressServiceBackend(
                                        name=app.name,
                                        port=client.V1ServiceBackendPort(number=app.port or DEFAULT_INGRESS_PORT),
                                    )
                                ),
                            )
                        ]),
                    )
                ],
            ),
        )

    def ensure_ingress(self, app: Application) -> Optional[Any]:
        """Crée ou met à jour l'Ingress TLS du domaine, ou le supprime sans domaine"""
        if not app.domain:
            self.delete_ingress(app)
            return None
        return self._upsert(KIND_INGRESS, self.build_ingress(app), app.namespace)

    def delete_ingress(self, app: Application) -> bool:
        return self._delete(KIND_INGRESS, app.name, app.namespace)

    # === LECTURES ===
    def workload_status(self, app: Application) -> Dict[str, Any]:
        """État en direct du Deployment et de ses pods"""
        deployment = self.api.get(KIND_DEPLOYMENT, app.name, app.namespace)
        if deployment is None:
            return {
                "name": app.name,
                "namespace": app.namespace,
                "status": "not_deployed",
                "replicas": 0,
                "ready_replicas": 0,
                "desired_replicas": app.replicas,
                "pods": [],
            }

        desired = deployment.spec.replicas or 0
        ready = (deployment.status.ready_replicas or 0) if deployment.status else 0
        replicas = (deployment.status.replicas or 0) if deployment.status else 0

        if desired > 0 and ready >= desired:
            status = "running"
        elif ready > 0:
            status = "partial"
        else:
            status = "pending"

        pods = self.api.list_pods(app.namespace, f"app={app.name}")
        return {
            "name": app.name,
            "namespace": app.namespace,
            "status": status,
            "replicas": replicas,
            "ready_replicas": ready,
            "desired_replicas": desired,
            "pods": [self._pod_summary(pod) for pod in pods],
        }

    @staticmethod
    def _pod_summary(pod: Any) -> Dict[str, Any]:
        status = pod.status
        conditions = (status.conditions or []) if status else []
        container_statuses = (status.container_statuses or []) if status else []
        return {
            "name": pod.metadata.name,
            "phase": status.phase if status else None,
            "ready": any(c.type == "Ready" and c.status == "True" for c in conditions),
            "restarts": sum(cs.restart_count or 0 for cs in container_statuses),
            "age": format_age(pod.metadata.creation_timestamp),
        }

    def autoscaler_status(self, app: Application) -> Dict[str, Any]:
        """État en direct du HPA"""
        hpa = self.api.get(KIND_HPA, app.name, app.namespace)
        if hpa is None:
            return {"enabled": False}

        result: Dict[str, Any] = {
            "enabled": True,
            "min_replicas": hpa.spec.min_replicas,
            "max_replicas": hpa.spec.max_replicas,
            "current_replicas": hpa.status.current_replicas if hpa.status else None,
            "desired_replicas": hpa.status.desired_replicas if hpa.status else None,
            "target_cpu": None,
            "target_memory": None,
            "current_cpu": None,
            "current_memory": None,
        }
        for metric in hpa.spec.metrics or []:
            if metric.resource is not None and metric.resource.name in ("cpu", "memory"):
                result[f"target_{metric.resource.name}"] = metric.resource.target.average_utilization
        current_metrics = (hpa.status.current_metrics or []) if hpa.status else []
        for metric in current_metrics:
            if metric.resource is not None and metric.resource.name in ("cpu", "memory"):
                result[f"current_{metric.resource.name}"] = metric.resource.current.average_utilization
        return result

    def ingress_status(self, app: Application) -> Dict[str, Any]:
        """État en direct de l'Ingress"""
        ingress = self.api.get(KIND_INGRESS, app.name, app.namespace) if app.domain else None
        if ingress is None:
            return {
                "domain": app.domain,
                "exists": False,
                "tls_enabled": False,
                "ready": False,
                "load_balancer": None,
                "hosts": [],
            }

        load_balancer = None
        lb_status = ingress.status.load_balancer if ingress.status else None
        for entry in (lb_status.ingress or []) if lb_status else []:
            load_balancer = entry.ip or entry.hostname
            if load_balancer:
                break

        hosts: List[str] = [rule.host for rule in (ingress.spec.rules or []) if rule.host]
        return {
            "domain": app.domain,
            "exists": True,
            "tls_enabled": bool(ingress.spec.tls),
            "ready": load_balancer is not None,
            "load_balancer": load_balancer,
            "hosts": hosts,
        }
