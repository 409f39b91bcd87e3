from pydantic import BaseModel, Field
from datetime import datetime
from typing import Dict, Optional, Any

from app.models.application import AppStatus, DomainStatus


class AppCreate(BaseModel):
    name: str
    image: str
    namespace: Optional[str] = None
    replicas: Optional[int] = None
    port: Optional[int] = None
    env_vars: Optional[Dict[str, str]] = None
    cpu_request: Optional[str] = None
    cpu_limit: Optional[str] = None
    memory_request: Optional[str] = None
    memory_limit: Optional[str] = None
    health_path: Optional[str] = None
    health_port: Optional[int] = None
    health_initial_delay: Optional[int] = None
    health_period: Optional[int] = None
    domain: Optional[str] = None


class AppUpdate(BaseModel):
    """Tous les champs sont optionnels: absent ou null conserve la valeur"""
    image: Optional[str] = None
    replicas: Optional[int] = None
    port: Optional[int] = None
    env_vars: Optional[Dict[str, str]] = None
    cpu_request: Optional[str] = None
    cpu_limit: Optional[str] = None
    memory_request: Optional[str] = None
    memory_limit: Optional[str] = None
    health_path: Optional[str] = None
    health_port: Optional[int] = None
    health_initial_delay: Optional[int] = None
    health_period: Optional[int] = None


class AppResponse(BaseModel):
    id: str
    cluster_id: str
    name: str
    namespace: str
    image: str
    replicas: int
    port: Optional[int] = None
    env_vars: Dict[str, str] = {}
    cpu_request: str
    cpu_limit: str
    memory_request: str
    memory_limit: str
    health_path: Optional[str] = None
    health_port: Optional[int] = None
    health_initial_delay: Optional[int] = None
    health_period: Optional[int] = None
    hpa_enabled: bool
    min_replicas: Optional[int] = None
    max_replicas: Optional[int] = None
    cpu_target: Optional[int] = None
    memory_target: Optional[int] = None
    domain: Optional[str] = None
    domain_status: Optional[DomainStatus] = None
    current_revision: int
    status: AppStatus
    status_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DeployRequest(BaseModel):
    deployed_by: Optional[str] = None


class RollbackRequest(BaseModel):
    revision: Optional[int] = Field(None, ge=1)
    deployed_by: Optional[str] = None


class RevisionResponse(BaseModel):
    id: str
    app_id: str
    revision_number: int
    image: str
    replicas: int
    port: Optional[int] = None
    env_vars: Dict[str, str] = {}
    cpu_request: str
    cpu_limit: str
    memory_request: str
    memory_limit: str
    health_path: Optional[str] = None
    health_port: Optional[int] = None
    hpa_enabled: bool
    min_replicas: Optional[int] = None
    max_replicas: Optional[int] = None
    cpu_target: Optional[int] = None
    memory_target: Optional[int] = None
    domain: Optional[str] = None
    deployed_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SecretSet(BaseModel):
    key: str
    value: str


class SecretResponse(BaseModel):
    """Jamais de valeur"""
    key: str
    created_at: datetime
    updated_at: datetime


class AutoscalingRequest(BaseModel):
    enabled: bool
    min_replicas: Optional[int] = None
    max_replicas: Optional[int] = None
    cpu_target: Optional[int] = None
    memory_target: Optional[int] = None


class DomainRequest(BaseModel):
    domain: Optional[str] = None


class StatusResponse(BaseModel):
    app_status: str
    status_message: Optional[str] = None
    current_revision: int
    workload: Dict[str, Any]

