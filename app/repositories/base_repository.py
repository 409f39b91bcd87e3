# app/repositories/base_repository.py
from typing import TypeVar, Generic, List, Optional, Type, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.database import Base
from app.core.errors import ConflictError

# Type générique pour les modèles
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Repository générique pour les opérations CRUD de base"""

    def __init__(self, model: Type[ModelType], db: Session):
        self.model = model
        self.db = db

    def get_by_id(self, id: str) -> Optional[ModelType]:
        """Récupère un enregistrement par son ID"""
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_all(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        """Récupère tous les enregistrements avec pagination"""
        try:
            return self.db.query(self.model).order_by(self.model.created_at).offset(skip).limit(limit).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_by_field(self, field: str, value: Any) -> Optional[ModelType]:
        """Récupère un enregistrement par un champ spécifique"""
        try:
            return self.db.query(self.model).filter(getattr(self.model, field) == value).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def get_many_by_field(self, field: str, value: Any, skip: int = 0, limit: int = 100) -> List[ModelType]:
        """Récupère plusieurs enregistrements par un champ spécifique"""
        try:
            return (self.db.query(self.model)
                    .filter(getattr(self.model, field) == value)
                    .order_by(self.model.created_at)
                    .offset(skip)
                    .limit(limit)
                    .all())
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def create(self, obj_data: Dict[str, Any]) -> ModelType:
        """Crée un nouvel enregistrement"""
        return self.add(self.model(**obj_data))

    def add(self, db_obj: ModelType) -> ModelType:
        """Persiste une instance déjà construite"""
        try:
            self.db.add(db_obj)
            self.db.commit()
            self.db.refresh(db_obj)
            return db_obj
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(f"{self.model.__tablename__}: unique constraint violated") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update(self, db_obj: ModelType, obj_data: Dict[str, Any]) -> ModelType:
        """Met à jour un enregistrement existant"""
        for field, value in obj_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
        return self.save(db_obj)

    def save(self, db_obj: ModelType) -> ModelType:
        """Commit les modifications en attente sur une instance"""
        try:
            self.db.commit()
            self.db.refresh(db_obj)
            return db_obj
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(f"{self.model.__tablename__}: unique constraint violated") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def delete(self, db_obj: ModelType) -> None:
        """Supprime un enregistrement"""
        try:
            self.db.delete(db_obj)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def exists(self, id: str) -> bool:
        """Vérifie si un enregistrement existe"""
        try:
            return self.db.query(self.model.id).filter(self.model.id == id).first() is not None
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
