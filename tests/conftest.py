"""Fixtures partagées: base SQLite par test, faux cluster en mémoire, worker réel."""
import itertools
import os
import threading

from app.core import crypto

# Avant tout import de app.config
os.environ.setdefault("ENCRYPTION_KEY", crypto.generate_key())

import pytest

from app.core.database import Base, build_session_factory, session_scope
from app.core.errors import ClusterConnectionError, ClusterError
from app.external.k8s_client import ClusterAPI, KIND_SERVICE
from app.models import Cluster, ClusterStatus, Project
from app.repositories.cluster_repository import ClusterRepository
from app.repositories.project_repository import ProjectRepository
from app.services.cluster_service import ClusterService
from app.services.credential_manager import CredentialManager
from app.services.deployment_service import DeploymentService
from app.services.project_service import ProjectService
from app.workers.deployment_worker import DeploymentWorker

KUBECONFIG = """
apiVersion: v1
kind: Config
current-context: test
clusters:
- name: test
  cluster:
    server: https://127.0.0.1:6443
contexts:
- name: test
  context:
    cluster: test
    user: test
users:
- name: test
  user:
    token: test-token
"""


class FakeClusterAPI(ClusterAPI):
    """ClusterAPI en mémoire: attribue resource_version et cluster_ip, injecte des pannes"""

    def __init__(self):
        self.resources = {}
        self.failures = {}
        self.calls = []
        self.pods = []
        self.logs = {}
        self.closed = 0
        self.version = "v1.29.2"
        self.node_address = "203.0.113.10"
        self._versions = itertools.count(1)
        self._ips = itertools.count(10)
        self._lock = threading.Lock()

    def fail(self, kind, operation, status=500, message="injected failure"):
        self.failures[(kind, operation)] = ClusterError(message, status=status)

    def clear_failures(self):
        self.failures.clear()

    def stored(self, kind, name, namespace="default"):
        return self.resources.get((kind, namespace, name))

    def _check(self, kind, operation):
        self.calls.append((operation, kind))
        error = self.failures.get((kind, operation))
        if error is not None:
            raise error

    def get(self, kind, name, namespace=None):
        with self._lock:
            self._check(kind, "get")
            return self.resources.get((kind, namespace, name))

    def create(self, kind, body, namespace=None):
        with self._lock:
            self._check(kind, "create")
            key = (kind, namespace, body.metadata.name)
            if key in self.resources:
                raise ClusterError("already exists", status=409)
            body.metadata.resource_version = str(next(self._versions))
            if kind == KIND_SERVICE:
                body.spec.cluster_ip = f"10.96.0.{next(self._ips)}"
            self.resources[key] = body
            return body

    def replace(self, kind, name, body, namespace=None):
        with self._lock:
            self._check(kind, "replace")
            key = (kind, namespace, name)
            existing = self.resources.get(key)
            if existing is None:
                raise ClusterError("not found", status=404)
            if body.metadata.resource_version != existing.metadata.resource_version:
                raise ClusterError("resource version conflict", status=409)
            body.metadata.resource_version = str(next(self._versions))
            if kind == KIND_SERVICE and not body.spec.cluster_ip:
                body.spec.cluster_ip = f"10.96.0.{next(self._ips)}"
            self.resources[key] = body
            return body

    def delete(self, kind, name, namespace=None):
        with self._lock:
            self._check(kind, "delete")
            return self.resources.pop((kind, namespace, name), None) is not None

    def list_pods(self, namespace, label_selector):
        self._check("pod", "list")
        app_name = label_selector.split("=", 1)[1]
        return [pod for pod in self.pods
                if pod.metadata.namespace == namespace and (pod.metadata.labels or {}).get("app") == app_name]

    def stream_pod_logs(self, name, namespace, follow=False, tail_lines=None):
        self._check("pod", "logs")
        lines = self.logs.get(name, [])
        if tail_lines:
            lines = lines[-tail_lines:]
        return (line for line in lines)

    def server_version(self):
        self._check("version", "get")
        return self.version

    def first_node_external_address(self):
        return self.node_address

    def close(self):
        self.closed += 1


@pytest.fixture
def encryption_key():
    return crypto.generate_key()


@pytest.fixture
def session_factory(tmp_path):
    factory = build_session_factory(f"sqlite:///{tmp_path / 'shipit.db'}")
    engine = factory.kw["bind"]
    Base.metadata.create_all(bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_cluster():
    return FakeClusterAPI()


@pytest.fixture
def credential_manager(encryption_key, fake_cluster):
    def factory(kubeconfig: bytes):
        if b"broken" in kubeconfig:
            raise ClusterConnectionError("failed to parse kubeconfig: broken")
        return fake_cluster

    return CredentialManager(encryption_key, client_factory=factory)


@pytest.fixture
def worker():
    worker = DeploymentWorker(max_workers=2)
    yield worker
    worker.shutdown()


@pytest.fixture
def deployment_service(session_factory, credential_manager, worker, encryption_key):
    return DeploymentService(
        session_factory=session_factory,
        credential_manager=credential_manager,
        worker=worker,
        encryption_key=encryption_key,
        history_limit=10,
    )


@pytest.fixture
def cluster_service(session_factory, credential_manager, worker):
    return ClusterService(session_factory, credential_manager, worker, aws_region="eu-west-1")


@pytest.fixture
def project_service(session_factory):
    return ProjectService(session_factory)


@pytest.fixture
def project(session_factory) -> Project:
    with session_scope(session_factory) as session:
        return ProjectRepository(session).create({"name": "acme"})


@pytest.fixture
def cluster(session_factory, credential_manager, project) -> Cluster:
    with session_scope(session_factory) as session:
        return ClusterRepository(session).create({
            "project_id": project.id,
            "name": "prod",
            "kubeconfig_encrypted": credential_manager.encrypt_credential(KUBECONFIG),
            "status": ClusterStatus.CONNECTED,
        })


@pytest.fixture
def make_app(deployment_service, cluster):
    def _make(**overrides):
        data = {"name": "web", "image": "nginx:latest", "replicas": 2, "port": 80}
        data.update(overrides)
        return deployment_service.create_app(cluster.id, data)

    return _make


@pytest.fixture
def deploy_and_wait(deployment_service, worker):
    def _deploy(app_id):
        deployment_service.deploy(app_id)
        assert worker.wait(timeout=10)
        return deployment_service.get_app(app_id)

    return _deploy
