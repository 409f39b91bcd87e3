import threading

from app.core.errors import WorkerStoppedError
from app.workers.deployment_worker import DeploymentWorker


def test_submit_runs_task_in_background():
    worker = DeploymentWorker(max_workers=1)
    done = threading.Event()
    try:
        worker.submit("task", done.set)
        assert worker.wait(timeout=5)
        assert done.is_set()
    finally:
        worker.shutdown()

    assert worker.pending_count == 0


def test_task_fault_is_captured_and_logged(caplog):
    worker = DeploymentWorker(max_workers=1)

    def explode():
        raise RuntimeError("kaboom")

    try:
        worker.submit("explode", explode)
        assert worker.wait(timeout=5)
    finally:
        worker.shutdown()

    assert any("kaboom" in record.getMessage() for record in caplog.records)


def test_wait_times_out_on_blocked_task():
    worker = DeploymentWorker(max_workers=1)
    release = threading.Event()
    try:
        worker.submit("blocked", release.wait, 5)
        assert worker.wait(timeout=0.05) is False
    finally:
        release.set()
        worker.shutdown()


def test_submit_after_shutdown_is_refused():
    worker = DeploymentWorker(max_workers=1)
    worker.shutdown()

    try:
        worker.submit("late", lambda: None)
    except WorkerStoppedError as e:
        assert "stopped" in str(e)
    else:
        raise AssertionError("submit should fail once the worker is stopped")
