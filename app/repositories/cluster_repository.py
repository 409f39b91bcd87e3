from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.models.cluster import Cluster
from app.repositories.base_repository import BaseRepository


class ClusterRepository(BaseRepository[Cluster]):
    """Repository pour les clusters enregistrés"""

    def __init__(self, db: Session):
        super().__init__(Cluster, db)

    def list_for_project(self, project_id: str, limit: int = 1000) -> List[Cluster]:
        return self.get_many_by_field("project_id", project_id, limit=limit)

    def get_by_name(self, project_id: str, name: str) -> Optional[Cluster]:
        """Le nom d'un cluster est unique au sein de son projet"""
        try:
            return (self.db.query(Cluster)
                    .filter(Cluster.project_id == project_id, Cluster.name == name)
                    .first())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
