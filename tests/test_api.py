import pytest
from fastapi.testclient import TestClient
from kubernetes import client

from app.dependencies import get_cluster_service, get_deployment_service, get_project_service
from app.main import app

from conftest import KUBECONFIG


@pytest.fixture
def api(deployment_service, cluster_service, project_service):
    app.dependency_overrides[get_deployment_service] = lambda: deployment_service
    app.dependency_overrides[get_cluster_service] = lambda: cluster_service
    app.dependency_overrides[get_project_service] = lambda: project_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(api):
    assert api.get("/health").json() == {"status": "healthy"}


def test_register_cluster(api, project, worker):
    response = api.post(f"/api/v1/projects/{project.id}/clusters", json={"name": "staging", "kubeconfig": KUBECONFIG})
    worker.wait(timeout=10)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["project_id"] == project.id
    assert "kubeconfig" not in body
    assert "kubeconfig_encrypted" not in body

    listed = api.get(f"/api/v1/projects/{project.id}/clusters").json()
    assert [c["name"] for c in listed] == ["staging"]


def test_register_cluster_requires_credential(api, project):
    response = api.post(f"/api/v1/projects/{project.id}/clusters", json={"name": "staging"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_project_lifecycle(api):
    response = api.post("/api/v1/projects/", json={"name": "acme"})
    assert response.status_code == 201
    project_id = response.json()["id"]

    assert [p["name"] for p in api.get("/api/v1/projects/").json()] == ["acme"]
    assert api.get(f"/api/v1/projects/{project_id}").json()["name"] == "acme"
    assert api.post("/api/v1/projects/", json={"name": "acme"}).status_code == 409

    assert api.delete(f"/api/v1/projects/{project_id}").status_code == 204
    assert api.get(f"/api/v1/projects/{project_id}").status_code == 404


def test_app_lifecycle(api, cluster, worker):
    response = api.post(f"/api/v1/clusters/{cluster.id}/apps",
                        json={"name": "web", "image": "nginx:latest", "replicas": 2, "port": 80})
    assert response.status_code == 201
    app_id = response.json()["id"]
    assert response.json()["status"] == "created"

    response = api.post(f"/api/v1/apps/{app_id}/deploy")
    assert response.status_code == 202
    assert response.json()["status"] == "deploying"
    worker.wait(timeout=10)

    body = api.get(f"/api/v1/apps/{app_id}").json()
    assert body["status"] == "running"
    assert body["current_revision"] == 1

    response = api.patch(f"/api/v1/apps/{app_id}", json={"replicas": 3})
    assert response.json()["replicas"] == 3
    assert response.json()["image"] == "nginx:latest"

    revisions = api.get(f"/api/v1/apps/{app_id}/revisions").json()
    assert [r["revision_number"] for r in revisions] == [1]

    assert api.delete(f"/api/v1/apps/{app_id}").status_code == 204
    assert api.get(f"/api/v1/apps/{app_id}").status_code == 404


def test_secrets_never_return_values(api, make_app):
    app_id = make_app().id

    response = api.put(f"/api/v1/apps/{app_id}/secrets", json={"key": "TOKEN", "value": "s3cr3t"})
    assert response.status_code == 200

    listed = api.get(f"/api/v1/apps/{app_id}/secrets")
    assert [entry["key"] for entry in listed.json()] == ["TOKEN"]
    assert "s3cr3t" not in listed.text


@pytest.mark.parametrize("method,path,payload,status", [
    ("get", "/api/v1/apps/missing", None, 404),
    ("post", "/api/v1/apps/{app_id}/rollback", None, 400),
    ("put", "/api/v1/apps/{app_id}/secrets", {"key": "", "value": "x"}, 400),
    ("put", "/api/v1/apps/{app_id}/autoscaling", {"enabled": True, "min_replicas": 4, "max_replicas": 2}, 400),
])
def test_error_mapping(api, make_app, method, path, payload, status):
    app_id = make_app().id
    kwargs = {"json": payload} if payload is not None else {}

    response = getattr(api, method)(path.format(app_id=app_id), **kwargs)

    assert response.status_code == status
    assert "detail" in response.json()


def test_duplicate_app_conflict(api, cluster, make_app):
    make_app()
    response = api.post(f"/api/v1/clusters/{cluster.id}/apps", json={"name": "web", "image": "nginx"})

    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"


def test_logs_error_is_mapped_before_streaming(api, make_app, fake_cluster):
    app_id = make_app().id
    fake_cluster.pods.append(client.V1Pod(
        metadata=client.V1ObjectMeta(name="web-1", namespace="default", labels={"app": "web"}),
    ))
    fake_cluster.fail("pod", "logs", status=403, message="forbidden")

    response = api.get(f"/api/v1/apps/{app_id}/logs")

    assert response.status_code == 502
    assert response.json()["code"] == "CLUSTER_ERROR"
