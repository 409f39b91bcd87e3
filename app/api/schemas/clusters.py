from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from app.models.cluster import ClusterStatus


class ClusterCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    kubeconfig: Optional[str] = None

    # Connexion directe EKS, alternative au kubeconfig
    aws_cluster_name: Optional[str] = None
    aws_region: Optional[str] = None
    aws_endpoint: Optional[str] = None
    aws_ca_data: Optional[str] = None


class ClusterResponse(BaseModel):
    id: str
    project_id: str
    name: str
    endpoint: Optional[str] = None
    version: Optional[str] = None
    status: ClusterStatus
    status_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
