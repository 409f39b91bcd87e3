import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import InvalidStateError, NotFoundError
from app.models.application import Application, CONFIG_FIELDS
from app.models.revision import Revision
from app.repositories.application_repository import ApplicationRepository
from app.repositories.revision_repository import RevisionRepository

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


class RevisionManager:
    """Historique immuable des configurations déployées"""

    def __init__(self, db: Session):
        self.db = db
        self.revision_repo = RevisionRepository(db)
        self.app_repo = ApplicationRepository(db)

    def _require_app(self, app_id: str) -> Application:
        app = self.app_repo.get_by_id(app_id)
        if app is None:
            raise NotFoundError(f"application {app_id} not found")
        return app

    def snapshot(self, app: Application, deployed_by: Optional[str] = None) -> Revision:
        """
        Fige la configuration courante dans une nouvelle révision

        Le numéro est current_revision + 1. Lève ConflictError si ce numéro
        existe déjà pour l'application.
        """
        revision = Revision(
            app_id=app.id,
            revision_number=(app.current_revision or 0) + 1,
            deployed_by=deployed_by,
            **app.config(),
        )
        revision = self.revision_repo.add(revision)
        logger.info(f"Révision {revision.revision_number} créée pour {app.name}")
        return revision

    def list(self, app_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Revision]:
        """Révisions d'une application, la plus récente en premier"""
        self._require_app(app_id)
        if limit is None or limit <= 0:
            limit = DEFAULT_HISTORY_LIMIT
        return self.revision_repo.list_for_app(app_id, limit=limit)

    def get(self, app_id: str, number: int) -> Revision:
        self._require_app(app_id)
        revision = self.revision_repo.get_by_number(app_id, number)
        if revision is None:
            raise NotFoundError(f"revision {number} not found")
        return revision

    def latest(self, app_id: str) -> Revision:
        self._require_app(app_id)
        revisions = self.revision_repo.list_for_app(app_id, limit=1)
        if not revisions:
            raise NotFoundError(f"no revision for application {app_id}")
        return revisions[0]

    def prune(self, app_id: str, keep: int = DEFAULT_HISTORY_LIMIT) -> int:
        """Supprime toutes les révisions sauf les `keep` plus récentes"""
        if keep is None or keep <= 0:
            keep = DEFAULT_HISTORY_LIMIT
        removed = self.revision_repo.delete_older_than(app_id, keep)
        if removed:
            logger.info(f"{removed} révision(s) supprimée(s) pour l'application {app_id}")
        return removed

    def discard(self, revision: Revision) -> None:
        """Supprime une révision créée par un déploiement qui a échoué"""
        self.revision_repo.delete(revision)
        logger.info(f"Révision {revision.revision_number} abandonnée pour l'application {revision.app_id}")

    def resolve_rollback_target(self, app: Application, number: Optional[int] = None) -> Revision:
        """Révision explicite, ou à défaut current_revision - 1"""
        if number is not None:
            revision = self.revision_repo.get_by_number(app.id, number)
            if revision is None:
                raise NotFoundError(f"revision {number} not found")
            return revision

        if (app.current_revision or 0) <= 1:
            raise InvalidStateError("no previous revision to rollback to")

        target = app.current_revision - 1
        revision = self.revision_repo.get_by_number(app.id, target)
        if revision is None:
            raise NotFoundError(f"revision {target} not found")
        return revision

    @staticmethod
    def apply(revision: Revision, app: Application) -> Application:
        """Recopie les champs de configuration d'une révision sur l'application"""
        for field in CONFIG_FIELDS:
            setattr(app, field, getattr(revision, field))
        app.env_vars = dict(revision.env_vars or {})
        return app
