import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from app.core import crypto
from app.core.errors import DecryptionError, NotFoundError, ValidationError
from app.models.secret import Secret
from app.repositories.application_repository import ApplicationRepository
from app.repositories.secret_repository import SecretRepository

logger = logging.getLogger(__name__)


class SecretManager:
    """Secrets applicatifs chiffrés au repos"""

    def __init__(self, db: Session, encryption_key: str):
        self.db = db
        self.encryption_key = encryption_key
        self.secret_repo = SecretRepository(db)
        self.app_repo = ApplicationRepository(db)

    def _require_app(self, app_id: str) -> None:
        if not self.app_repo.exists(app_id):
            raise NotFoundError(f"application {app_id} not found")

    def set(self, app_id: str, key: str, value: str) -> Secret:
        """Crée ou remplace un secret"""
        if not key:
            raise ValidationError("secret key is required")
        if not value:
            raise ValidationError("secret value is required")
        self._require_app(app_id)

        encrypted = crypto.encrypt(value.encode("utf-8"), self.encryption_key)
        existing = self.secret_repo.get_by_key(app_id, key)
        if existing is not None:
            secret = self.secret_repo.update(existing, {"value_encrypted": encrypted})
            logger.info(f"Secret {key} mis à jour pour l'application {app_id}")
            return secret

        secret = self.secret_repo.create({"app_id": app_id, "key": key, "value_encrypted": encrypted})
        logger.info(f"Secret {key} créé pour l'application {app_id}")
        return secret

    def delete(self, app_id: str, key: str) -> None:
        self._require_app(app_id)
        secret = self.secret_repo.get_by_key(app_id, key)
        if secret is None:
            raise NotFoundError(f"secret {key} not found")
        self.secret_repo.delete(secret)
        logger.info(f"Secret {key} supprimé pour l'application {app_id}")

    def list(self, app_id: str) -> List[Dict[str, Any]]:
        """Clés et dates uniquement, jamais les valeurs"""
        self._require_app(app_id)
        return [
            {"key": secret.key, "created_at": secret.created_at, "updated_at": secret.updated_at}
            for secret in self.secret_repo.list_for_app(app_id)
        ]

    def bundle(self, app_id: str) -> Dict[str, str]:
        """Déchiffre tous les secrets d'une application"""
        data = {}
        for secret in self.secret_repo.list_for_app(app_id):
            try:
                data[secret.key] = crypto.decrypt(secret.value_encrypted, self.encryption_key).decode("utf-8")
            except DecryptionError as e:
                raise DecryptionError(f"secret {secret.key}: {e}")
        return data
