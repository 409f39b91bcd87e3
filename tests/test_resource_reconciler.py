from datetime import datetime, timedelta, timezone

import pytest
from kubernetes import client

from app.core.errors import ClusterError
from app.external.k8s_client import KIND_DEPLOYMENT, KIND_HPA, KIND_INGRESS, KIND_NAMESPACE, KIND_SECRET, KIND_SERVICE
from app.models.application import Application
from app.services.resource_reconciler import ResourceReconciler, format_age


def make_application(**overrides):
    values = dict(
        id="app-1",
        name="web",
        namespace="default",
        image="nginx:latest",
        replicas=2,
        port=80,
        env_vars={},
        cpu_request="100m",
        cpu_limit="500m",
        memory_request="128Mi",
        memory_limit="256Mi",
        hpa_enabled=False,
    )
    values.update(overrides)
    return Application(**values)


@pytest.fixture
def reconciler(fake_cluster):
    return ResourceReconciler(fake_cluster)


def test_workload_created_then_updated(fake_cluster, reconciler):
    app = make_application()
    reconciler.ensure_workload(app)
    first_version = fake_cluster.stored(KIND_DEPLOYMENT, "web").metadata.resource_version

    app.replicas = 3
    reconciler.ensure_workload(app)

    deployment = fake_cluster.stored(KIND_DEPLOYMENT, "web")
    assert deployment.spec.replicas == 3
    assert deployment.metadata.resource_version != first_version
    assert ("replace", KIND_DEPLOYMENT) in fake_cluster.calls


def test_workload_spec(fake_cluster, reconciler):
    app = make_application(env_vars={"B": "2", "A": "1"}, health_path="/healthz")
    reconciler.ensure_workload(app, secret_name="web-secrets")

    deployment = fake_cluster.stored(KIND_DEPLOYMENT, "web")
    assert deployment.metadata.labels == {"app": "web", "managed-by": "shipit"}
    assert deployment.spec.selector.match_labels == {"app": "web"}

    container = deployment.spec.template.spec.containers[0]
    assert container.image == "nginx:latest"
    assert [(e.name, e.value) for e in container.env] == [("A", "1"), ("B", "2")]
    assert container.env_from[0].secret_ref.name == "web-secrets"
    assert container.ports[0].container_port == 80
    assert container.resources.requests == {"cpu": "100m", "memory": "128Mi"}
    assert container.resources.limits == {"cpu": "500m", "memory": "256Mi"}

    probe = container.liveness_probe
    assert probe is container.readiness_probe
    assert probe.http_get.path == "/healthz"
    assert probe.http_get.port == 80
    assert probe.initial_delay_seconds == 10
    assert probe.period_seconds == 30


def test_probe_uses_health_port_and_custom_timings(reconciler):
    app = make_application(health_path="/ready", health_port=9090, health_initial_delay=3, health_period=5)
    container = reconciler.build_workload(app).spec.template.spec.containers[0]

    assert container.readiness_probe.http_get.port == 9090
    assert container.readiness_probe.initial_delay_seconds == 3
    assert container.readiness_probe.period_seconds == 5


def test_health_check_keeps_explicit_zero_delay(reconciler):
    app = make_application(health_path="/healthz", health_initial_delay=0)
    probe = reconciler.build_workload(app).spec.template.spec.containers[0].liveness_probe

    assert probe.initial_delay_seconds == 0
    assert probe.period_seconds == 30


def test_no_probe_without_health_path_or_port(reconciler):
    assert reconciler.build_workload(make_application()).spec.template.spec.containers[0].liveness_probe is None
    no_port = make_application(port=None, health_path="/healthz")
    container = reconciler.build_workload(no_port).spec.template.spec.containers[0]
    assert container.liveness_probe is None
    assert container.ports is None


def test_create_conflict_counts_as_success(fake_cluster, reconciler):
    app = make_application()
    fake_cluster.fail(KIND_DEPLOYMENT, "create", status=409)

    reconciler.ensure_workload(app)


def test_create_failure_propagates(fake_cluster, reconciler):
    fake_cluster.fail(KIND_DEPLOYMENT, "create", status=403, message="forbidden")

    with pytest.raises(ClusterError) as excinfo:
        reconciler.ensure_workload(make_application())
    assert excinfo.value.status == 403


def test_network_endpoint_keeps_cluster_ip(fake_cluster, reconciler):
    app = make_application()
    reconciler.ensure_network_endpoint(app)
    cluster_ip = fake_cluster.stored(KIND_SERVICE, "web").spec.cluster_ip

    app.port = 8080
    reconciler.ensure_network_endpoint(app)

    service = fake_cluster.stored(KIND_SERVICE, "web")
    assert service.spec.cluster_ip == cluster_ip
    assert service.spec.type == "ClusterIP"
    assert service.spec.ports[0].port == 8080
    assert service.spec.ports[0].target_port == 8080


def test_network_endpoint_removed_without_port(fake_cluster, reconciler):
    app = make_application()
    reconciler.ensure_network_endpoint(app)

    app.port = None
    assert reconciler.ensure_network_endpoint(app) is None
    assert fake_cluster.stored(KIND_SERVICE, "web") is None


def test_autoscaler_defaults_to_cpu_80(fake_cluster, reconciler):
    app = make_application(hpa_enabled=True)
    reconciler.ensure_autoscaler(app)

    hpa = fake_cluster.stored(KIND_HPA, "web")
    assert hpa.spec.min_replicas == 1
    assert hpa.spec.max_replicas == 10
    assert hpa.spec.scale_target_ref.kind == "Deployment"
    assert hpa.spec.scale_target_ref.name == "web"
    assert len(hpa.spec.metrics) == 1
    assert hpa.spec.metrics[0].resource.name == "cpu"
    assert hpa.spec.metrics[0].resource.target.average_utilization == 80


def test_autoscaler_with_both_targets(fake_cluster, reconciler):
    app = make_application(hpa_enabled=True, min_replicas=2, max_replicas=6, cpu_target=60, memory_target=70)
    reconciler.ensure_autoscaler(app)

    metrics = fake_cluster.stored(KIND_HPA, "web").spec.metrics
    assert [(m.resource.name, m.resource.target.average_utilization) for m in metrics] == [
        ("cpu", 60), ("memory", 70)
    ]


def test_disabled_autoscaler_is_deleted(fake_cluster, reconciler):
    app = make_application(hpa_enabled=True)
    reconciler.ensure_autoscaler(app)

    app.hpa_enabled = False
    reconciler.ensure_autoscaler(app)
    assert fake_cluster.stored(KIND_HPA, "web") is None

    # Absent: toujours un succès
    reconciler.ensure_autoscaler(app)


def test_ingress_spec(fake_cluster):
    reconciler = ResourceReconciler(fake_cluster, ingress_class="nginx", cluster_issuer="letsencrypt-staging")
    app = make_application(domain="app.example.com", port=3000)
    reconciler.ensure_ingress(app)

    ingress = fake_cluster.stored(KIND_INGRESS, "web")
    assert ingress.metadata.annotations == {
        "cert-manager.io/cluster-issuer": "letsencrypt-staging",
        "nginx.ingress.kubernetes.io/ssl-redirect": "true",
    }
    assert ingress.spec.ingress_class_name == "nginx"
    assert ingress.spec.tls[0].hosts == ["app.example.com"]
    assert ingress.spec.tls[0].secret_name == "web-tls"
    rule = ingress.spec.rules[0]
    assert rule.host == "app.example.com"
    path = rule.http.paths[0]
    assert (path.path, path.path_type) == ("/", "Prefix")
    assert path.backend.service.name == "web"
    assert path.backend.service.port.number == 3000


def test_ingress_defaults_to_port_80_and_is_removed_without_domain(fake_cluster, reconciler):
    app = make_application(domain="app.example.com", port=None)
    reconciler.ensure_ingress(app)
    assert fake_cluster.stored(KIND_INGRESS, "web").spec.rules[0].http.paths[0].backend.service.port.number == 80

    app.domain = None
    reconciler.ensure_ingress(app)
    assert fake_cluster.stored(KIND_INGRESS, "web") is None


def test_secret_bundle(fake_cluster, reconciler):
    app = make_application()
    name = reconciler.ensure_secret_bundle(app, {"TOKEN": "abc"})

    assert name == "web-secrets"
    secret = fake_cluster.stored(KIND_SECRET, "web-secrets")
    assert secret.type == "Opaque"
    assert secret.string_data == {"TOKEN": "abc"}


def test_namespace_provisioning(fake_cluster, reconciler):
    reconciler.ensure_namespace("default")
    reconciler.ensure_namespace("kube-system")
    assert ("create", KIND_NAMESPACE) not in fake_cluster.calls

    reconciler.ensure_namespace("team-a")
    reconciler.ensure_namespace("team-a")
    assert fake_cluster.stored(KIND_NAMESPACE, "team-a", namespace=None) is not None


def test_namespace_failure_is_best_effort(fake_cluster, reconciler):
    fake_cluster.fail(KIND_NAMESPACE, "create", status=403)
    reconciler.ensure_namespace("team-a")


def test_deletes_ignore_absence(reconciler):
    app = make_application(domain="app.example.com")
    assert reconciler.delete_workload(app) is False
    assert reconciler.delete_network_endpoint(app) is False
    assert reconciler.delete_secret_bundle(app) is False
    assert reconciler.delete_ingress(app) is False


def test_workload_status(fake_cluster, reconciler):
    app = make_application()
    assert reconciler.workload_status(app)["status"] == "not_deployed"

    reconciler.ensure_workload(app)
    deployment = fake_cluster.stored(KIND_DEPLOYMENT, "web")
    deployment.status = client.V1DeploymentStatus(replicas=2, ready_replicas=1)
    fake_cluster.pods.append(client.V1Pod(
        metadata=client.V1ObjectMeta(
            name="web-abc",
            namespace="default",
            labels={"app": "web"},
            creation_timestamp=datetime.now(timezone.utc) - timedelta(minutes=5),
        ),
        status=client.V1PodStatus(
            phase="Running",
            conditions=[client.V1PodCondition(type="Ready", status="True")],
            container_statuses=[client.V1ContainerStatus(
                name="web", image="nginx:latest", image_id="", ready=True, restart_count=3
            )],
        ),
    ))

    status = reconciler.workload_status(app)
    assert status["status"] == "partial"
    assert status["desired_replicas"] == 2
    assert status["ready_replicas"] == 1
    assert status["pods"] == [{"name": "web-abc", "phase": "Running", "ready": True, "restarts": 3, "age": "5m"}]

    deployment.status = client.V1DeploymentStatus(replicas=2, ready_replicas=2)
    assert reconciler.workload_status(app)["status"] == "running"


def test_autoscaler_status(fake_cluster, reconciler):
    app = make_application(hpa_enabled=True, cpu_target=75)
    assert reconciler.autoscaler_status(app) == {"enabled": False}

    reconciler.ensure_autoscaler(app)
    status = reconciler.autoscaler_status(app)
    assert status["enabled"] is True
    assert status["target_cpu"] == 75
    assert status["target_memory"] is None


def test_ingress_status(fake_cluster, reconciler):
    app = make_application(domain="app.example.com")
    assert reconciler.ingress_status(app)["exists"] is False

    reconciler.ensure_ingress(app)
    ingress = fake_cluster.stored(KIND_INGRESS, "web")
    ingress.status = client.V1IngressStatus(load_balancer=client.V1IngressLoadBalancerStatus(
        ingress=[client.V1IngressLoadBalancerIngress(ip="198.51.100.7")]
    ))

    status = reconciler.ingress_status(app)
    assert status["tls_enabled"] is True
    assert status["ready"] is True
    assert status["load_balancer"] == "198.51.100.7"
    assert status["hosts"] == ["app.example.com"]


@pytest.mark.parametrize("delta,expected", [
    (timedelta(seconds=42), "42s"),
    (timedelta(minutes=3, seconds=5), "3m"),
    (timedelta(hours=5), "5h"),
    (timedelta(days=2, hours=1), "2d"),
])
def test_format_age(delta, expected):
    now = datetime(2024, 1, 10, tzinfo=timezone.utc)
    assert format_age(now - delta, now=now) == expected
