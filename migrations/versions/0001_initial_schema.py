"""initial schema: projects, clusters, applications, revisions, secrets

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _config_columns(unique_domain: bool):
    return [
        sa.Column("image", sa.String(512), nullable=False),
        sa.Column("replicas", sa.Integer(), nullable=False),
        sa.Column("port", sa.Integer(), nullable=True),
        sa.Column("env_vars", sa.JSON(), nullable=False),
        sa.Column("cpu_request", sa.String(32), nullable=False),
        sa.Column("cpu_limit", sa.String(32), nullable=False),
        sa.Column("memory_request", sa.String(32), nullable=False),
        sa.Column("memory_limit", sa.String(32), nullable=False),
        sa.Column("health_path", sa.String(255), nullable=True),
        sa.Column("health_port", sa.Integer(), nullable=True),
        sa.Column("health_initial_delay", sa.Integer(), nullable=True),
        sa.Column("health_period", sa.Integer(), nullable=True),
        sa.Column("hpa_enabled", sa.Boolean(), nullable=False),
        sa.Column("min_replicas", sa.Integer(), nullable=True),
        sa.Column("max_replicas", sa.Integer(), nullable=True),
        sa.Column("cpu_target", sa.Integer(), nullable=True),
        sa.Column("memory_target", sa.Integer(), nullable=True),
        sa.Column("domain", sa.String(253), nullable=True, unique=unique_domain),
    ]


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_projects_name", "projects", ["name"], unique=True)

    op.create_table(
        "clusters",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("endpoint", sa.String(255), nullable=True),
        sa.Column("version", sa.String(64), nullable=True),
        sa.Column("kubeconfig_encrypted", sa.LargeBinary(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("status_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "name", name="uq_cluster_project_name"),
    )
    op.create_index("ix_clusters_project_id", "clusters", ["project_id"])

    op.create_table(
        "applications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("cluster_id", sa.String(36), sa.ForeignKey("clusters.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(63), nullable=False),
        sa.Column("namespace", sa.String(63), nullable=False),
        *_config_columns(unique_domain=True),
        sa.Column("domain_status", sa.String(20), nullable=True),
        sa.Column("current_revision", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("status_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("cluster_id", "namespace", "name", name="uq_application_cluster_namespace_name"),
    )
    op.create_index("ix_applications_cluster_id", "applications", ["cluster_id"])

    op.create_table(
        "revisions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("app_id", sa.String(36), sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("revision_number", sa.Integer(), nullable=False),
        *_config_columns(unique_domain=False),
        sa.Column("deployed_by", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("app_id", "revision_number", name="uq_revision_app_number"),
    )
    op.create_index("ix_revisions_app_id", "revisions", ["app_id"])

    op.create_table(
        "secrets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("app_id", sa.String(36), sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("value_encrypted", sa.LargeBinary(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("app_id", "key", name="uq_secret_app_key"),
    )
    op.create_index("ix_secrets_app_id", "secrets", ["app_id"])


def downgrade() -> None:
    op.drop_index("ix_secrets_app_id", table_name="secrets")
    op.drop_table("secrets")
    op.drop_index("ix_revisions_app_id", table_name="revisions")
    op.drop_table("revisions")
    op.drop_index("ix_applications_cluster_id", table_name="applications")
    op.drop_table("applications")
    op.drop_index("ix_clusters_project_id", table_name="clusters")
    op.drop_table("clusters")
    op.drop_index("ix_projects_name", table_name="projects")
    op.drop_table("projects")
