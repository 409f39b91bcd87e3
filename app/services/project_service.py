import logging
from typing import List

from sqlalchemy.orm import sessionmaker

from app.core.database import session_scope
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.project import Project
from app.repositories.project_repository import ProjectRepository

logger = logging.getLogger(__name__)


class ProjectService:
    """Projets: regroupement des clusters"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create_project(self, name: str) -> Project:
        name = (name or "").strip()
        if not name:
            raise ValidationError("project name is required")

        with session_scope(self.session_factory) as db:
            repo = ProjectRepository(db)
            if repo.get_by_name(name):
                raise ConflictError(f"project {name} already exists")
            project = repo.create({"name": name})

        logger.info(f"Projet {project.name} créé")
        return project

    def list_projects(self) -> List[Project]:
        with session_scope(self.session_factory) as db:
            return ProjectRepository(db).get_all(limit=1000)

    def get_project(self, project_id: str) -> Project:
        with session_scope(self.session_factory) as db:
            project = ProjectRepository(db).get_by_id(project_id)
        if project is None:
            raise NotFoundError(f"project {project_id} not found")
        return project

    def delete_project(self, project_id: str) -> None:
        """Supprime un projet et, en cascade, ses clusters et leurs applications"""
        with session_scope(self.session_factory) as db:
            repo = ProjectRepository(db)
            project = repo.get_by_id(project_id)
            if project is None:
                raise NotFoundError(f"project {project_id} not found")
            repo.delete(project)
            logger.info(f"Projet {project.name} supprimé")
