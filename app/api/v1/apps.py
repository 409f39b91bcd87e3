from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from typing import Any, Dict, List, Optional

from app.api.schemas.apps import (
    AppResponse,
    AppUpdate,
    AutoscalingRequest,
    DeployRequest,
    DomainRequest,
    RevisionResponse,
    RollbackRequest,
    SecretResponse,
    SecretSet,
    StatusResponse,
)
from app.dependencies import get_deployment_service
from app.services.deployment_service import DeploymentService

router = APIRouter(prefix="/apps", tags=["apps"])


@router.get("/{app_id}", response_model=AppResponse)
async def get_app(app_id: str, service: DeploymentService = Depends(get_deployment_service)):
    """Détail d'une application"""
    return service.get_app(app_id)


@router.patch("/{app_id}", response_model=AppResponse)
async def update_app(
        app_id: str,
        patch: AppUpdate,
        service: DeploymentService = Depends(get_deployment_service)
):
    """Mise à jour partielle (sans déploiement)"""
    return service.update_app(app_id, patch.model_dump(exclude_unset=True))


@router.delete("/{app_id}", status_code=204)
def delete_app(app_id: str, service: DeploymentService = Depends(get_deployment_service)):
    """Supprime l'application et ses ressources dans le cluster"""
    service.delete(app_id)


# === DÉPLOIEMENT ===
@router.post("/{app_id}/deploy", response_model=AppResponse, status_code=202)
async def deploy_app(
        app_id: str,
        data: Optional[DeployRequest] = None,
        service: DeploymentService = Depends(get_deployment_service)
):
    """Lance un déploiement en arrière-plan"""
    deployed_by = data.deployed_by if data else None
    return service.deploy(app_id, deployed_by=deployed_by)


@router.post("/{app_id}/rollback", response_model=AppResponse, status_code=202)
async def rollback_app(
        app_id: str,
        data: Optional[RollbackRequest] = None,
        service: DeploymentService = Depends(get_deployment_service)
):
    """Rollback vers une révision (par défaut la précédente)"""
    data = data or RollbackRequest()
    return service.rollback(app_id, revision=data.revision, deployed_by=data.deployed_by)


@router.get("/{app_id}/revisions", response_model=List[RevisionResponse])
async def list_revisions(
        app_id: str,
        limit: int = Query(10, ge=1, le=100),
        service: DeploymentService = Depends(get_deployment_service)
):
    """Historique des révisions, la plus récente en premier"""
    return service.list_revisions(app_id, limit=limit)


@router.get("/{app_id}/revisions/{number}", response_model=RevisionResponse)
async def get_revision(
        app_id: str,
        number: int,
        service: DeploymentService = Depends(get_deployment_service)
):
    return service.get_revision(app_id, number)


# === SECRETS ===
@router.get("/{app_id}/secrets", response_model=List[SecretResponse])
async def list_secrets(app_id: str, service: DeploymentService = Depends(get_deployment_service)):
    """Clés des secrets, sans les valeurs"""
    return service.list_secrets(app_id)


@router.put("/{app_id}/secrets", response_model=SecretResponse)
async def set_secret(
        app_id: str,
        data: SecretSet,
        service: DeploymentService = Depends(get_deployment_service)
):
    """Crée ou remplace un secret (appliqué au prochain déploiement)"""
    return service.set_secret(app_id, data.key, data.value)


@router.delete("/{app_id}/secrets/{key}", status_code=204)
async def delete_secret(
        app_id: str,
        key: str,
        service: DeploymentService = Depends(get_deployment_service)
):
    service.delete_secret(app_id, key)


# === AUTOSCALING ===
@router.get("/{app_id}/autoscaling")
def get_autoscaling(app_id: str, service: DeploymentService = Depends(get_deployment_service)) -> Dict[str, Any]:
    """État en direct du HPA"""
    return service.get_autoscaling(app_id)


@router.put("/{app_id}/autoscaling", response_model=AppResponse)
def set_autoscaling(
        app_id: str,
        data: AutoscalingRequest,
        service: DeploymentService = Depends(get_deployment_service)
):
    """Active, modifie ou désactive l'autoscaling"""
    return service.set_autoscaling(
        app_id,
        enabled=data.enabled,
        min_replicas=data.min_replicas,
        max_replicas=data.max_replicas,
        cpu_target=data.cpu_target,
        memory_target=data.memory_target,
    )


# === DOMAINE ===
@router.get("/{app_id}/domain")
def get_domain(app_id: str, service: DeploymentService = Depends(get_deployment_service)) -> Dict[str, Any]:
    return service.get_domain(app_id)


@router.put("/{app_id}/domain", response_model=AppResponse)
def set_domain(
        app_id: str,
        data: DomainRequest,
        service: DeploymentService = Depends(get_deployment_service)
):
    """Associe un domaine, ou le retire avec une valeur vide"""
    return service.set_domain(app_id, data.domain)


# === ÉTAT EN DIRECT ===
@router.get("/{app_id}/status", response_model=StatusResponse)
def get_status(app_id: str, service: DeploymentService = Depends(get_deployment_service)):
    """État en direct du déploiement et des pods"""
    return service.get_status(app_id)


@router.get("/{app_id}/logs")
def stream_logs(
        app_id: str,
        follow: bool = False,
        tail: Optional[int] = Query(None, ge=1),
        service: DeploymentService = Depends(get_deployment_service)
):
    """Logs du premier pod de l'application"""
    chunks = service.stream_logs(app_id, follow=follow, tail=tail)
    return StreamingResponse(chunks, media_type="text/plain")
