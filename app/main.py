import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from app.api.middleware import setup_middlewares
from app.api.router import router
from app.config import settings
from app.core.database import get_db_manager
from app.core.logging import setup_logging
from app.dependencies import get_deployment_worker, shutdown_deployment_worker

setup_logging(settings.LOG_LEVEL, log_file=settings.LOG_FILE or None)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Démarrage de l'application...")

    get_db_manager().create_tables()
    worker = get_deployment_worker()
    app.state.worker = worker
    logger.info(f"Worker de déploiement démarré ({worker.max_workers} threads)")

    yield

    logger.info("Arrêt de l'application...")
    shutdown_deployment_worker()
    logger.info("Application arrêtée proprement")


app = FastAPI(
    title=settings.APP_NAME,
    description="API de déploiement et de réconciliation d'applications Kubernetes",
    version="1.0.0",
    lifespan=lifespan
)

setup_middlewares(app)
app.include_router(router)


if __name__ == "__main__":
    logger.info("Documentation : http://localhost:8000/docs")
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
