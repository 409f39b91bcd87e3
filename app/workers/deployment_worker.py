import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional, Set

from app.core.errors import WorkerStoppedError

logger = logging.getLogger(__name__)


class DeploymentWorker:
    """
    Exécute les tâches de fond (déploiements, rollbacks, sondes de cluster)

    Pool de threads borné. submit() retourne immédiatement; les exceptions
    qui s'échappent d'une tâche sont journalisées, jamais propagées.
    """

    def __init__(self, max_workers: int = 4):
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="deploy")
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self.running = True

    def submit(self, name: str, func: Callable, *args, **kwargs) -> None:
        """Soumet une tâche détachée"""
        if not self.running:
            raise WorkerStoppedError("deployment worker is stopped")

        try:
            future = self._executor.submit(func, *args, **kwargs)
        except RuntimeError as e:
            raise WorkerStoppedError(f"deployment worker is stopped: {e}")
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(lambda f: self._on_done(name, f))
        logger.debug(f"Tâche {name} soumise")

    def _on_done(self, name: str, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if future.cancelled():
            logger.warning(f"Tâche {name} annulée")
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Tâche {name} terminée en erreur: {error}", exc_info=error)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Attend la fin des tâches en cours. Retourne False en cas de timeout."""
        while True:
            with self._lock:
                pending = {f for f in self._pending if not f.done()}
            if not pending:
                return True
            done, not_done = wait(pending, timeout=timeout)
            if not_done:
                return False

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        """Arrête le worker"""
        self.running = False
        self._executor.shutdown(wait=wait_for_tasks)
        logger.info("Worker de déploiement arrêté")
