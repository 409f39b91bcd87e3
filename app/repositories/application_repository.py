from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.models.application import Application
from app.repositories.base_repository import BaseRepository


class ApplicationRepository(BaseRepository[Application]):
    """Repository pour les applications"""

    def __init__(self, db: Session):
        super().__init__(Application, db)

    def list_for_cluster(self, cluster_id: str) -> List[Application]:
        """Récupère les applications d'un cluster"""
        try:
            return (self.db.query(Application)
                    .filter(Application.cluster_id == cluster_id)
                    .order_by(Application.created_at)
                    .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_by_identity(self, cluster_id: str, namespace: str, name: str) -> Optional[Application]:
        """Récupère une application par (cluster, namespace, nom)"""
        try:
            return (self.db.query(Application)
                    .filter(Application.cluster_id == cluster_id,
                            Application.namespace == namespace,
                            Application.name == name)
                    .first())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_by_domain(self, domain: str, exclude_id: Optional[str] = None) -> Optional[Application]:
        """Récupère l'application qui porte un domaine, en excluant éventuellement une application"""
        try:
            query = self.db.query(Application).filter(Application.domain == domain)
            if exclude_id:
                query = query.filter(Application.id != exclude_id)
            return query.first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
