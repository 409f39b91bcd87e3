import logging
import re
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.database import session_scope
from app.core.errors import (
    ClusterError,
    ConflictError,
    DecryptionError,
    InvalidStateError,
    NotFoundError,
    ShipitError,
    ValidationError,
    WorkerStoppedError,
)
from app.external.k8s_client import ClusterAPI
from app.models.application import Application, AppStatus, DomainStatus, CONFIG_FIELDS
from app.models.cluster import Cluster
from app.models.revision import Revision
from app.repositories.application_repository import ApplicationRepository
from app.repositories.cluster_repository import ClusterRepository
from app.repositories.secret_repository import SecretRepository
from app.services.credential_manager import CredentialManager
from app.services.resource_reconciler import (
    DEFAULT_MAX_REPLICAS,
    DEFAULT_MIN_REPLICAS,
    ResourceReconciler,
)
from app.services.revision_manager import DEFAULT_HISTORY_LIMIT, RevisionManager
from app.services.secret_manager import SecretManager
from app.workers.deployment_worker import DeploymentWorker

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    AppStatus.CREATED: {AppStatus.PENDING},
    AppStatus.PENDING: {AppStatus.DEPLOYING, AppStatus.FAILED},
    AppStatus.DEPLOYING: {AppStatus.RUNNING, AppStatus.FAILED, AppStatus.PENDING, AppStatus.ROLLING_BACK},
    AppStatus.RUNNING: {AppStatus.PENDING, AppStatus.ROLLING_BACK, AppStatus.FAILED},
    AppStatus.FAILED: {AppStatus.PENDING, AppStatus.ROLLING_BACK},
    AppStatus.ROLLING_BACK: {AppStatus.RUNNING, AppStatus.FAILED, AppStatus.PENDING},
}

APP_DEFAULTS = {
    "namespace": "default",
    "replicas": 1,
    "env_vars": {},
    "cpu_request": "100m",
    "cpu_limit": "500m",
    "memory_request": "128Mi",
    "memory_limit": "256Mi",
    "hpa_enabled": False,
}

# Le domaine passe par set_domain, le nom et le namespace sont l'identité de l'application
UPDATABLE_FIELDS = tuple(field for field in CONFIG_FIELDS if field != "domain")

NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
DOMAIN_PATTERN = re.compile(r"^(?=.{1,253}$)([a-z0-9]([-a-z0-9]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


def check_transition(current: AppStatus, target: AppStatus) -> bool:
    """
    Vérifie une transition de statut

    Retourne False si le statut est inchangé (no-op), True si la transition
    est autorisée, lève InvalidStateError sinon.
    """
    if current == target:
        return False
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStateError(f"cannot transition from {current.value} to {target.value}")
    return True


def validate_name(name: Optional[str], what: str = "name") -> str:
    if not name:
        raise ValidationError(f"{what} is required")
    if len(name) > 63 or not NAME_PATTERN.match(name):
        raise ValidationError(f"{what} must be a valid DNS-1123 label: {name}")
    return name


def normalize_domain(domain: Optional[str]) -> Optional[str]:
    domain = (domain or "").strip().lower()
    if not domain:
        return None
    if not DOMAIN_PATTERN.match(domain):
        raise ValidationError(f"invalid domain: {domain}")
    return domain


def _check_port(value: Optional[int], what: str) -> None:
    if value is not None and not 1 <= value <= 65535:
        raise ValidationError(f"{what} must be between 1 and 65535")


def _check_percent(value: Optional[int], what: str) -> None:
    if value is not None and not 1 <= value <= 100:
        raise ValidationError(f"{what} must be between 1 and 100")


def validate_autoscaling(min_replicas: int, max_replicas: int,
                         cpu_target: Optional[int], memory_target: Optional[int]) -> None:
    if min_replicas < 1:
        raise ValidationError("min_replicas must be >= 1")
    if max_replicas < min_replicas:
        raise ValidationError("max_replicas must be >= min_replicas")
    _check_percent(cpu_target, "cpu_target")
    _check_percent(memory_target, "memory_target")


def validate_config(values: Dict[str, Any]) -> None:
    """Valide une configuration complète d'application"""
    if not values.get("image"):
        raise ValidationError("image is required")
    if values.get("replicas") is None or values["replicas"] < 0:
        raise ValidationError("replicas must be >= 0")
    _check_port(values.get("port"), "port")
    _check_port(values.get("health_port"), "health_port")
    if values.get("health_initial_delay") is not None and values["health_initial_delay"] < 0:
        raise ValidationError("health_initial_delay must be >= 0")
    if values.get("health_period") is not None and values["health_period"] < 1:
        raise ValidationError("health_period must be >= 1")

    env_vars = values.get("env_vars") or {}
    if not isinstance(env_vars, dict):
        raise ValidationError("env_vars must be a mapping")
    for key in env_vars:
        if not key:
            raise ValidationError("env_vars keys must not be empty")

    if values.get("hpa_enabled"):
        validate_autoscaling(
            values.get("min_replicas") or DEFAULT_MIN_REPLICAS,
            values.get("max_replicas") or DEFAULT_MAX_REPLICAS,
            values.get("cpu_target"),
            values.get("memory_target"),
        )
    else:
        _check_percent(values.get("cpu_target"), "cpu_target")
        _check_percent(values.get("memory_target"), "memory_target")


class _DeployStepError(Exception):
    """Étape de réconciliation en échec, message prêt pour status_message"""


class DeploymentService:
    """
    Orchestrateur des déploiements

    Les opérations synchrones valident, écrivent le statut puis soumettent la
    réconciliation au worker. La tâche de fond ne remonte jamais d'erreur à
    l'appelant: tout échec devient un statut failed avec un message.
    Deux déploiements simultanés d'une même application ne sont pas
    sérialisés, la dernière écriture l'emporte.
    """

    def __init__(self, session_factory: sessionmaker, credential_manager: CredentialManager,
                 worker: DeploymentWorker, encryption_key: str,
                 history_limit: int = DEFAULT_HISTORY_LIMIT,
                 ingress_class: str = "nginx", cluster_issuer: str = "letsencrypt-prod"):
        self.session_factory = session_factory
        self.credentials = credential_manager
        self.worker = worker
        self.encryption_key = encryption_key
        self.history_limit = history_limit
        self.ingress_class = ingress_class
        self.cluster_issuer = cluster_issuer

    # === HELPERS ===
    def _reconciler(self, api: ClusterAPI) -> ResourceReconciler:
        return ResourceReconciler(api, ingress_class=self.ingress_class, cluster_issuer=self.cluster_issuer)

    @staticmethod
    def _get_app(db: Session, app_id: str) -> Application:
        app = ApplicationRepository(db).get_by_id(app_id)
        if app is None:
            raise NotFoundError(f"application {app_id} not found")
        return app

    @staticmethod
    def _get_cluster(db: Session, cluster_id: str) -> Cluster:
        cluster = ClusterRepository(db).get_by_id(cluster_id)
        if cluster is None:
            raise NotFoundError(f"cluster {cluster_id} not found")
        return cluster

    @staticmethod
    def _set_status(app: Application, status: AppStatus, message: Optional[str] = None) -> None:
        check_transition(app.status, status)
        app.status = status
        app.status_message = message

    def _check_domain_free(self, db: Session, domain: Optional[str], app_id: Optional[str]) -> None:
        if domain and ApplicationRepository(db).get_by_domain(domain, exclude_id=app_id):
            raise ConflictError(f"domain {domain} is already used by another application")

    # === APPLICATIONS ===
    def create_app(self, cluster_id: str, data: Dict[str, Any]) -> Application:
        """Crée une application (statut created, rien n'est déployé)"""
        values = dict(APP_DEFAULTS)
        values.update({key: value for key, value in data.items() if value is not None})

        validate_name(values.get("name"))
        validate_name(values.get("namespace"), "namespace")
        validate_config(values)
        values["domain"] = normalize_domain(values.get("domain"))
        values["env_vars"] = {str(k): str(v) for k, v in (values.get("env_vars") or {}).items()}

        with session_scope(self.session_factory) as db:
            self._get_cluster(db, cluster_id)
            repo = ApplicationRepository(db)
            if repo.get_by_identity(cluster_id, values["namespace"], values["name"]):
                raise ConflictError(f"application {values['namespace']}/{values['name']} already exists")
            self._check_domain_free(db, values["domain"], None)

            fields = {key: values[key] for key in ("name", "namespace", *CONFIG_FIELDS) if key in values}
            app = repo.create({
                **fields,
                "cluster_id": cluster_id,
                "status": AppStatus.CREATED,
                "current_revision": 0,
            })
            logger.info(f"Application {app.namespace}/{app.name} créée sur le cluster {cluster_id}")
            return app

    def get_app(self, app_id: str) -> Application:
        with session_scope(self.session_factory) as db:
            return self._get_app(db, app_id)

    def list_apps(self, cluster_id: str) -> List[Application]:
        with session_scope(self.session_factory) as db:
            self._get_cluster(db, cluster_id)
            return ApplicationRepository(db).list_for_cluster(cluster_id)

    def update_app(self, app_id: str, patch: Dict[str, Any]) -> Application:
        """
        Mise à jour partielle

        Un champ présent et non nul remplace la valeur stockée, un champ
        absent ou nul la conserve. Ne déclenche pas de déploiement.
        """
        changes = {key: value for key, value in patch.items()
                   if key in UPDATABLE_FIELDS and value is not None}

        with session_scope(self.session_factory) as db:
            app = self._get_app(db, app_id)
            merged = {**app.config(), **changes}
            validate_config(merged)
            if "env_vars" in changes:
                changes["env_vars"] = {str(k): str(v) for k, v in changes["env_vars"].items()}

            app = ApplicationRepository(db).update(app, changes)
            logger.info(f"Application {app.name} mise à jour: {sorted(changes)}")
            return app

    # === DEPLOY / ROLLBACK ===
    def deploy(self, app_id: str, deployed_by: Optional[str] = None) -> Application:
        """Accepte un déploiement et lance la réconciliation en arrière-plan"""
        with session_scope(self.session_factory) as db:
            repo = ApplicationRepository(db)
            app = self._get_app(db, app_id)
            cluster = self._get_cluster(db, app.cluster_id)

            self._set_status(app, AppStatus.PENDING)
            repo.save(app)

            try:
                kubeconfig = self.credentials.decrypt_credential(cluster)
            except DecryptionError as e:
                self._set_status(app, AppStatus.FAILED, str(e))
                repo.save(app)
                raise

            self._set_status(app, AppStatus.DEPLOYING)
            app = repo.save(app)

        self._submit_reconcile(app, f"deploy-{app.id}", kubeconfig, deployed_by)
        logger.info(f"Déploiement de {app.name} accepté")
        return app

    def rollback(self, app_id: str, revision: Optional[int] = None,
                 deployed_by: Optional[str] = None) -> Application:
        """Réapplique une révision passée sous un nouveau numéro de révision"""
        with session_scope(self.session_factory) as db:
            repo = ApplicationRepository(db)
            app = self._get_app(db, app_id)
            target = RevisionManager(db).resolve_rollback_target(app, revision)
            self._check_domain_free(db, target.domain, app.id)
            check_transition(app.status, AppStatus.ROLLING_BACK)
            cluster = self._get_cluster(db, app.cluster_id)

            try:
                kubeconfig = self.credentials.decrypt_credential(cluster)
            except DecryptionError as e:
                self._set_status(app, AppStatus.FAILED, str(e))
                repo.save(app)
                raise

            RevisionManager.apply(target, app)
            if app.domain and app.domain_status is None:
                app.domain_status = DomainStatus.PROVISIONING
            elif not app.domain:
                app.domain_status = None
            self._set_status(app, AppStatus.ROLLING_BACK)
            app = repo.save(app)
            target_number = target.revision_number

        self._submit_reconcile(app, f"rollback-{app.id}", kubeconfig, deployed_by)
        logger.info(f"Rollback de {app.name} vers la révision {target_number} accepté")
        return app

    def _submit_reconcile(self, app: Application, task_name: str, kubeconfig: bytes,
                          deployed_by: Optional[str]) -> None:
        """Soumet la réconciliation; un refus du worker devient un statut failed"""
        try:
            self.worker.submit(task_name, self._reconcile, app.id, kubeconfig, deployed_by)
        except WorkerStoppedError as e:
            with session_scope(self.session_factory) as db:
                current = self._get_app(db, app.id)
                self._set_status(current, AppStatus.FAILED, f"failed to schedule deployment: {e}")
                ApplicationRepository(db).save(current)
            raise

    # === TÂCHE DE FOND ===
    def _reconcile(self, app_id: str, kubeconfig: bytes, deployed_by: Optional[str] = None) -> None:
        """Point d'entrée de la tâche de fond: toute erreur devient un statut failed"""
        with session_scope(self.session_factory) as db:
            app = ApplicationRepository(db).get_by_id(app_id)
            if app is None:
                logger.warning(f"Application {app_id} supprimée avant la réconciliation")
                return
            try:
                self._run_reconcile(db, app, kubeconfig, deployed_by)
            except Exception as e:
                logger.exception(f"Erreur inattendue lors du déploiement de {app_id}: {e}")
                db.rollback()
                self._finish(db, app, AppStatus.FAILED, f"unexpected error: {e}")

    def _finish(self, db: Session, app: Application, status: AppStatus,
                message: Optional[str] = None, revision_number: Optional[int] = None) -> bool:
        """
        Écrit un statut terminal en relisant l'application

        Une révision appliquée au cluster fait toujours avancer
        current_revision, même si une tâche concurrente a déjà écrit un
        statut qui interdit la transition.
        """
        try:
            db.refresh(app)
        except InvalidRequestError:
            logger.warning(f"Application {app.id} supprimée pendant le déploiement")
            return False

        accepted = True
        try:
            self._set_status(app, status, message)
        except InvalidStateError as e:
            logger.warning(f"Statut de {app.name} non mis à jour: {e}")
            accepted = False

        if revision_number is not None:
            app.current_revision = max(app.current_revision or 0, revision_number)
        elif not accepted:
            return False

        ApplicationRepository(db).save(app)
        if accepted and status == AppStatus.FAILED:
            logger.error(f"Déploiement de {app.name} en échec: {message}")
        return accepted

    def _run_reconcile(self, db: Session, app: Application, kubeconfig: bytes,
                       deployed_by: Optional[str]) -> None:
        try:
            api = self.credentials.build_client(kubeconfig)
        except ClusterError as e:
            self._finish(db, app, AppStatus.FAILED, f"failed to connect to cluster: {e}")
            return

        with api:
            revisions = RevisionManager(db)
            try:
                revision = revisions.snapshot(app, deployed_by=deployed_by)
            except (ShipitError, SQLAlchemyError) as e:
                self._finish(db, app, AppStatus.FAILED, f"failed to create revision: {e}")
                return

            reconciler = self._reconciler(api)
            try:
                self._apply_resources(db, reconciler, app)
            except Exception as e:
                message = str(e) if isinstance(e, _DeployStepError) else f"failed to deploy: {e}"
                db.rollback()
                self._discard_revision(revisions, revision)
                self._finish(db, app, AppStatus.FAILED, message)
                return

            if not self._finish(db, app, AppStatus.RUNNING, None,
                                revision_number=revision.revision_number):
                return
            logger.info(f"Application {app.name} déployée (révision {revision.revision_number})")

            self._sync_extras(db, reconciler, app)

            try:
                revisions.prune(app.id, keep=self.history_limit)
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning(f"Impossible de purger les révisions de {app.name}: {e}")

    def _apply_resources(self, db: Session, reconciler: ResourceReconciler, app: Application) -> None:
        """Namespace, secrets, workload et service, dans cet ordre"""
        reconciler.ensure_namespace(app.namespace)

        secret_name = None
        if SecretRepository(db).list_for_app(app.id):
            try:
                data = SecretManager(db, self.encryption_key).bundle(app.id)
            except DecryptionError as e:
                raise _DeployStepError(f"failed to decrypt secret: {e}")
            try:
                secret_name = reconciler.ensure_secret_bundle(app, data)
            except ClusterError as e:
                raise _DeployStepError(f"failed to create secret bundle: {e}")
        else:
            try:
                reconciler.delete_secret_bundle(app)
            except ClusterError as e:
                logger.warning(f"Impossible de supprimer le secret de {app.name}: {e}")

        try:
            reconciler.ensure_workload(app, secret_name)
        except ClusterError as e:
            raise _DeployStepError(f"failed to deploy workload: {e}")

        try:
            reconciler.ensure_network_endpoint(app)
        except ClusterError as e:
            raise _DeployStepError(f"failed to deploy network endpoint: {e}")

    def _sync_extras(self, db: Session, reconciler: ResourceReconciler, app: Application) -> None:
        """Autoscaler et ingress: un échec n'est qu'un avertissement"""
        warnings = []
        try:
            reconciler.ensure_autoscaler(app)
        except ClusterError as e:
            warnings.append(f"warning: failed to sync autoscaler: {e}")

        # Sans domaine, ensure_ingress supprime un éventuel ingress résiduel
        try:
            reconciler.ensure_ingress(app)
            if app.domain:
                app.domain_status = DomainStatus.ACTIVE
        except ClusterError as e:
            warnings.append(f"warning: failed to sync ingress: {e}")

        if warnings:
            app.status_message = "; ".join(warnings)
            for warning in warnings:
                logger.warning(f"{app.name}: {warning}")
        ApplicationRepository(db).save(app)

    @staticmethod
    def _discard_revision(revisions: RevisionManager, revision: Revision) -> None:
        try:
            revisions.discard(revision)
        except SQLAlchemyError as e:
            revisions.db.rollback()
            logger.warning(f"Impossible d'abandonner la révision {revision.revision_number}: {e}")

    # === SUPPRESSION ===
    def delete(self, app_id: str) -> None:
        """Nettoie le cluster (best-effort) puis supprime l'application et son historique"""
        with session_scope(self.session_factory) as db:
            app = self._get_app(db, app_id)
            cluster = self._get_cluster(db, app.cluster_id)

            try:
                api = self.credentials.connect(cluster)
            except (DecryptionError, ClusterError) as e:
                logger.warning(f"Nettoyage du cluster ignoré pour {app.name}: {e}")
            else:
                with api:
                    self._cleanup_resources(self._reconciler(api), app)

            ApplicationRepository(db).delete(app)
            logger.info(f"Application {app.name} supprimée")

    @staticmethod
    def _cleanup_resources(reconciler: ResourceReconciler, app: Application) -> None:
        steps = [
            reconciler.delete_workload,
            reconciler.delete_network_endpoint,
            reconciler.delete_secret_bundle,
            reconciler.delete_autoscaler,
        ]
        if app.domain:
            steps.append(reconciler.delete_ingress)

        for step in steps:
            try:
                step(app)
            except ClusterError as e:
                logger.warning(f"{step.__name__} en échec pour {app.name}: {e}")

    # === RÉVISIONS ===
    def list_revisions(self, app_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Revision]:
        with session_scope(self.session_factory) as db:
            return RevisionManager(db).list(app_id, limit=limit)

    def get_revision(self, app_id: str, number: int) -> Revision:
        with session_scope(self.session_factory) as db:
            return RevisionManager(db).get(app_id, number)

    # === SECRETS ===
    def set_secret(self, app_id: str, key: str, value: str) -> Dict[str, Any]:
        """Les secrets atteignent le cluster au prochain déploiement"""
        with session_scope(self.session_factory) as db:
            secret = SecretManager(db, self.encryption_key).set(app_id, key, value)
            return {"key": secret.key, "created_at": secret.created_at, "updated_at": secret.updated_at}

    def delete_secret(self, app_id: str, key: str) -> None:
        with session_scope(self.session_factory) as db:
            SecretManager(db, self.encryption_key).delete(app_id, key)

    def list_secrets(self, app_id: str) -> List[Dict[str, Any]]:
        with session_scope(self.session_factory) as db:
            return SecretManager(db, self.encryption_key).list(app_id)

    # === AUTOSCALING ===
    def set_autoscaling(self, app_id: str, enabled: bool, min_replicas: Optional[int] = None,
                        max_replicas: Optional[int] = None, cpu_target: Optional[int] = None,
                        memory_target: Optional[int] = None) -> Application:
        """Applique immédiatement la configuration HPA puis la persiste"""
        if enabled:
            min_replicas = min_replicas if min_replicas is not None else DEFAULT_MIN_REPLICAS
            max_replicas = max_replicas if max_replicas is not None else DEFAULT_MAX_REPLICAS
            validate_autoscaling(min_replicas, max_replicas, cpu_target, memory_target)

        with session_scope(self.session_factory) as db:
            app = self._get_app(db, app_id)
            cluster = self._get_cluster(db, app.cluster_id)

            app.hpa_enabled = enabled
            if enabled:
                app.min_replicas = min_replicas
                app.max_replicas = max_replicas
                app.cpu_target = cpu_target
                app.memory_target = memory_target

            try:
                with self.credentials.connect(cluster) as api:
                    self._reconciler(api).ensure_autoscaler(app)
            except ShipitError:
                db.rollback()
                raise

            app = ApplicationRepository(db).save(app)
            logger.info(f"Autoscaling de {app.name} {'activé' if enabled else 'désactivé'}")
            return app

    def get_autoscaling(self, app_id: str) -> Dict[str, Any]:
        with session_scope(self.session_factory) as db:
            app = self._get_app(db, app_id)
            cluster = self._get_cluster(db, app.cluster_id)
            with self.credentials.connect(cluster) as api:
                return self._reconciler(api).autoscaler_status(app)

    # === DOMAINE ===
    def set_domain(self, app_id: str, domain: Optional[str]) -> Application:
        """Associe un domaine (ingress TLS) ou le retire si vide"""
        domain = normalize_domain(domain)

        with session_scope(self.session_factory) as db:
            repo = ApplicationRepository(db)
            app = self._get_app(db, app_id)
            cluster = self._get_cluster(db, app.cluster_id)

            if domain:
                self._check_domain_free(db, domain, app.id)
                app.domain = domain
                try:
                    with self.credentials.connect(cluster) as api:
                        self._reconciler(api).ensure_ingress(app)
                except ShipitError:
                    db.rollback()
                    raise
                app.domain_status = DomainStatus.PROVISIONING
                logger.info(f"Domaine {domain} associé à {app.name}")
            else:
                if app.domain:
                    try:
                        with self.credentials.connect(cluster) as api:
                            self._reconciler(api).delete_ingress(app)
                    except (DecryptionError, ClusterError) as e:
                        logger.warning(f"Impossible de supprimer l'ingress de {app.name}: {e}")
                app.domain = None
                app.domain_status = None
                logger.info(f"Domaine retiré de {app.name}")

            return repo.save(app)

    def get_domain(self, app_id: str) -> Dict[str, Any]:
        with session_scope(self.session_factory) as db:
            app = self._get_app(db, app_id)
            result = {
                "domain": app.domain,
                "domain_status": app.domain_status.value if app.domain_status else None,
                "ingress": None,
            }
            if app.domain:
                cluster = self._get_cluster(db, app.cluster_id)
                with self.credentials.connect(cluster) as api:
                    result["ingress"] = self._reconciler(api).ingress_status(app)
            return result

    # === LECTURES EN DIRECT ===
    def get_status(self, app_id: str) -> Dict[str, Any]:
        """État en direct du workload, sans cache"""
        with session_scope(self.session_factory) as db:
            app = self._get_app(db, app_id)
            cluster = self._get_cluster(db, app.cluster_id)
            with self.credentials.connect(cluster) as api:
                workload = self._reconciler(api).workload_status(app)
            return {
                "app_status": app.status.value,
                "status_message": app.status_message,
                "current_revision": app.current_revision,
                "workload": workload,
            }

    def stream_logs(self, app_id: str, follow: bool = False, tail: Optional[int] = None) -> Iterator[bytes]:
        """
        Flux des logs du premier pod de l'application

        Les erreurs de résolution (application, pod) et d'ouverture du flux
        sont levées avant le premier chunk. Le client est fermé quand le flux
        se termine ou quand le consommateur arrête d'itérer.
        """
        with session_scope(self.session_factory) as db:
            app = self._get_app(db, app_id)
            cluster = self._get_cluster(db, app.cluster_id)
            name, namespace = app.name, app.namespace

        api = self.credentials.connect(cluster)
        try:
            pods = api.list_pods(namespace, f"app={name}")
            if not pods:
                raise NotFoundError(f"no pods found for application {name}")
            chunks = api.stream_pod_logs(pods[0].metadata.name, namespace, follow=follow, tail_lines=tail)
        except Exception:
            api.close()
            raise

        return self._iter_logs(api, chunks)

    @staticmethod
    def _iter_logs(api: ClusterAPI, chunks: Iterator[bytes]) -> Iterator[bytes]:
        try:
            for chunk in chunks:
                yield chunk
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                close()
            api.close()
