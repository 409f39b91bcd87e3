from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.models.revision import Revision
from app.repositories.base_repository import BaseRepository


class RevisionRepository(BaseRepository[Revision]):
    """Repository pour l'historique des révisions"""

    def __init__(self, db: Session):
        super().__init__(Revision, db)

    def list_for_app(self, app_id: str, limit: Optional[int] = None) -> List[Revision]:
        """Révisions d'une application, la plus récente en premier"""
        try:
            query = (self.db.query(Revision)
                     .filter(Revision.app_id == app_id)
                     .order_by(Revision.revision_number.desc()))
            if limit is not None:
                query = query.limit(limit)
            return query.all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_by_number(self, app_id: str, number: int) -> Optional[Revision]:
        try:
            return (self.db.query(Revision)
                    .filter(Revision.app_id == app_id, Revision.revision_number == number)
                    .first())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def delete_older_than(self, app_id: str, keep: int) -> int:
        """Supprime toutes les révisions sauf les `keep` plus récentes"""
        try:
            stale = (self.db.query(Revision)
                     .filter(Revision.app_id == app_id)
                     .order_by(Revision.revision_number.desc())
                     .offset(keep)
                     .all())
            for revision in stale:
                self.db.delete(revision)
            self.db.commit()
            return len(stale)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
