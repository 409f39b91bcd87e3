from fastapi import APIRouter, Depends
from typing import List

from app.api.schemas.clusters import ClusterCreate, ClusterResponse
from app.api.schemas.projects import ProjectCreate, ProjectResponse
from app.dependencies import get_cluster_service, get_project_service
from app.services.cluster_service import ClusterService
from app.services.project_service import ProjectService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("/", response_model=ProjectResponse, status_code=201)
async def create_project(data: ProjectCreate, service: ProjectService = Depends(get_project_service)):
    """Crée un projet"""
    return service.create_project(data.name)


@router.get("/", response_model=List[ProjectResponse])
async def list_projects(service: ProjectService = Depends(get_project_service)):
    """Liste les projets"""
    return service.list_projects()


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, service: ProjectService = Depends(get_project_service)):
    return service.get_project(project_id)


@router.delete("/{project_id}", status_code=204)
async def delete_project(project_id: str, service: ProjectService = Depends(get_project_service)):
    """Supprime un projet, ses clusters et leurs applications"""
    service.delete_project(project_id)


@router.post("/{project_id}/clusters", response_model=ClusterResponse, status_code=201)
async def register_cluster(
        project_id: str,
        data: ClusterCreate,
        service: ClusterService = Depends(get_cluster_service)
):
    """Enregistre un cluster (kubeconfig ou EKS); la connectivité est vérifiée en arrière-plan"""
    return service.register_cluster(
        project_id,
        data.name,
        kubeconfig=data.kubeconfig,
        aws_cluster_name=data.aws_cluster_name,
        aws_endpoint=data.aws_endpoint,
        aws_ca_data=data.aws_ca_data,
        aws_region=data.aws_region,
    )


@router.get("/{project_id}/clusters", response_model=List[ClusterResponse])
async def list_clusters(project_id: str, service: ClusterService = Depends(get_cluster_service)):
    """Liste les clusters d'un projet"""
    return service.list_clusters(project_id)
