from fastapi import APIRouter, Depends
from typing import List

from app.api.schemas.clusters import ClusterResponse
from app.api.schemas.apps import AppCreate, AppResponse
from app.dependencies import get_cluster_service, get_deployment_service
from app.services.cluster_service import ClusterService
from app.services.deployment_service import DeploymentService

router = APIRouter(prefix="/clusters", tags=["clusters"])


@router.get("/{cluster_id}", response_model=ClusterResponse)
async def get_cluster(cluster_id: str, service: ClusterService = Depends(get_cluster_service)):
    """Détail d'un cluster"""
    return service.get_cluster(cluster_id)


@router.delete("/{cluster_id}", status_code=204)
async def delete_cluster(cluster_id: str, service: ClusterService = Depends(get_cluster_service)):
    """Supprime un cluster et ses applications"""
    service.delete_cluster(cluster_id)


@router.post("/{cluster_id}/apps", response_model=AppResponse, status_code=201)
async def create_app(
        cluster_id: str,
        data: AppCreate,
        service: DeploymentService = Depends(get_deployment_service)
):
    """Crée une application sur un cluster"""
    return service.create_app(cluster_id, data.model_dump(exclude_none=True))


@router.get("/{cluster_id}/apps", response_model=List[AppResponse])
async def list_apps(cluster_id: str, service: DeploymentService = Depends(get_deployment_service)):
    """Liste les applications d'un cluster"""
    return service.list_apps(cluster_id)
