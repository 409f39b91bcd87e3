from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app.models.secret import Secret
from app.repositories.base_repository import BaseRepository


class SecretRepository(BaseRepository[Secret]):
    """Repository pour les secrets chiffrés"""

    def __init__(self, db: Session):
        super().__init__(Secret, db)

    def list_for_app(self, app_id: str) -> List[Secret]:
        try:
            return (self.db.query(Secret)
                    .filter(Secret.app_id == app_id)
                    .order_by(Secret.key)
                    .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_by_key(self, app_id: str, key: str) -> Optional[Secret]:
        try:
            return (self.db.query(Secret)
                    .filter(Secret.app_id == app_id, Secret.key == key)
                    .first())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
