from fastapi import APIRouter
from app.api.v1 import projects, clusters, apps
from app.dependencies import get_deployment_worker

router = APIRouter()

router.include_router(projects.router, prefix="/api/v1")
router.include_router(clusters.router, prefix="/api/v1")
router.include_router(apps.router, prefix="/api/v1")


@router.get("/")
async def root():
    return {
        "message": "Shipit API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@router.get("/health")
async def health():
    return {"status": "healthy"}


@router.get("/worker/status")
async def worker_status():
    worker = get_deployment_worker()
    return {
        "running": worker.running,
        "max_workers": worker.max_workers,
        "pending_tasks": worker.pending_count,
        "status": "healthy" if worker.running else "stopped",
    }
