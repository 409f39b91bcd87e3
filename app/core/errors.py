# app/core/errors.py
from typing import Optional


class ShipitError(Exception):
    """Erreur de base du moteur de déploiement"""


class ValidationError(ShipitError):
    """Entrée invalide (champ manquant, nom invalide, bornes HPA...)"""


class NotFoundError(ShipitError):
    """Ressource introuvable (cluster, application, révision, secret)"""


class ConflictError(ShipitError):
    """Violation d'unicité (nom d'application, domaine, numéro de révision)"""


class InvalidStateError(ShipitError):
    """Opération impossible dans l'état courant"""


class DecryptionError(ShipitError):
    """Échec de l'authentification ou du déchiffrement d'un blob"""


class ClusterError(ShipitError):
    """Échec d'un appel à l'API du cluster"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def is_conflict(self) -> bool:
        return self.status == 409


class ClusterConnectionError(ClusterError):
    """Kubeconfig invalide ou endpoint injoignable"""


class WorkerStoppedError(ShipitError, RuntimeError):
    """Le worker de fond est arrêté et refuse toute nouvelle tâche"""
