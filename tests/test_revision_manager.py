import pytest

from app.core.errors import ConflictError, InvalidStateError, NotFoundError
from app.repositories.application_repository import ApplicationRepository
from app.services.revision_manager import RevisionManager


@pytest.fixture
def app(db, make_app):
    return ApplicationRepository(db).get_by_id(make_app().id)


@pytest.fixture
def revisions(db):
    return RevisionManager(db)


def _deploy_snapshots(db, revisions, app, count):
    """Simule `count` déploiements réussis"""
    repo = ApplicationRepository(db)
    for i in range(count):
        app.replicas = i + 1
        revision = revisions.snapshot(app)
        app.current_revision = revision.revision_number
        repo.save(app)


def test_snapshot_copies_configuration(revisions, app):
    revision = revisions.snapshot(app, deployed_by="alice")

    assert revision.revision_number == 1
    assert revision.image == "nginx:latest"
    assert revision.replicas == 2
    assert revision.port == 80
    assert revision.cpu_request == "100m"
    assert revision.memory_limit == "256Mi"
    assert revision.hpa_enabled is False
    assert revision.deployed_by == "alice"


def test_snapshot_numbers_increase(db, revisions, app):
    _deploy_snapshots(db, revisions, app, 3)

    numbers = [r.revision_number for r in revisions.list(app.id)]
    assert numbers == [3, 2, 1]


def test_duplicate_snapshot_conflicts(revisions, app):
    revisions.snapshot(app)

    with pytest.raises(ConflictError):
        revisions.snapshot(app)


def test_list_limit_and_order(db, revisions, app):
    _deploy_snapshots(db, revisions, app, 12)

    assert [r.revision_number for r in revisions.list(app.id)] == list(range(12, 2, -1))
    assert [r.revision_number for r in revisions.list(app.id, limit=3)] == [12, 11, 10]


def test_get_and_latest(db, revisions, app):
    with pytest.raises(NotFoundError):
        revisions.latest(app.id)

    _deploy_snapshots(db, revisions, app, 2)

    assert revisions.latest(app.id).revision_number == 2
    assert revisions.get(app.id, 1).replicas == 1
    with pytest.raises(NotFoundError):
        revisions.get(app.id, 42)
    with pytest.raises(NotFoundError):
        revisions.list("missing")


def test_prune_keeps_highest(db, revisions, app):
    _deploy_snapshots(db, revisions, app, 15)

    removed = revisions.prune(app.id, keep=10)

    assert removed == 5
    remaining = [r.revision_number for r in revisions.list(app.id, limit=100)]
    assert remaining == list(range(15, 5, -1))


def test_prune_non_positive_keep_means_default(db, revisions, app):
    _deploy_snapshots(db, revisions, app, 12)

    assert revisions.prune(app.id, keep=0) == 2
    assert len(revisions.list(app.id, limit=100)) == 10


def test_rollback_target_defaults_to_previous(db, revisions, app):
    _deploy_snapshots(db, revisions, app, 3)

    assert revisions.resolve_rollback_target(app).revision_number == 2
    assert revisions.resolve_rollback_target(app, 1).revision_number == 1


def test_rollback_target_without_previous_revision(db, revisions, app):
    with pytest.raises(InvalidStateError):
        revisions.resolve_rollback_target(app)

    _deploy_snapshots(db, revisions, app, 1)
    with pytest.raises(InvalidStateError, match="no previous revision"):
        revisions.resolve_rollback_target(app)


def test_rollback_target_unknown_number(db, revisions, app):
    _deploy_snapshots(db, revisions, app, 2)

    with pytest.raises(NotFoundError):
        revisions.resolve_rollback_target(app, 7)


def test_apply_copies_fields(db, revisions, app):
    app.env_vars = {"MODE": "old"}
    revision = revisions.snapshot(app)
    app.image = "nginx:2"
    app.env_vars = {"MODE": "new"}

    RevisionManager.apply(revision, app)

    assert app.image == "nginx:latest"
    assert app.env_vars == {"MODE": "old"}
