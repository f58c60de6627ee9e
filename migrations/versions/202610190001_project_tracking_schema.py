"""Create roles, users, projects and audit log tables (SQLite-safe, idempotent)."""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "202610190001_project_tracking_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "role" not in existing_tables:
        op.create_table(
            "role",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=80), nullable=False),
            sa.Column("display_name", sa.String(length=120), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("permissions", sa.JSON(), nullable=False),
            sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name", name="uq_role_name"),
        )
        print("[INFO] Created role table.")

    if "user" not in existing_tables:
        op.create_table(
            "user",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=80), nullable=False),
            sa.Column("password_hash", sa.Text(), nullable=True),
            sa.Column("name", sa.String(length=80), nullable=False),
            sa.Column("email", sa.String(length=120), nullable=False),
            sa.Column("department", sa.String(length=80), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login", sa.DateTime(), nullable=True),
            sa.Column("preferences", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("role_id", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["role_id"], ["role.id"], name="fk_user_role_id"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username", name="uq_user_username"),
            sa.UniqueConstraint("email", name="uq_user_email"),
        )
        print("[INFO] Created user table.")

    if "project" not in existing_tables:
        op.create_table(
            "project",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("client", sa.String(length=255), nullable=False),
            sa.Column("type", sa.String(length=32), nullable=False, server_default="new-build"),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
            sa.Column("priority", sa.String(length=32), nullable=False, server_default="medium"),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=False),
            sa.Column("estimated_budget", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("actual_budget", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("tasks", sa.JSON(), nullable=False),
            sa.Column("team_members", sa.JSON(), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("owner_id", sa.Integer(), nullable=True),
            sa.Column("client_user_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("deleted_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["owner_id"], ["user.id"], name="fk_project_owner_id"),
            sa.ForeignKeyConstraint(["client_user_id"], ["user.id"], name="fk_project_client_user_id"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_status", "project", ["status"])
        op.create_index("ix_project_owner_id", "project", ["owner_id"])
        op.create_index("ix_project_client_user_id", "project", ["client_user_id"])
        print("[INFO] Created project table.")

    if "audit_log" not in existing_tables:
        op.create_table(
            "audit_log",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("action", sa.String(length=32), nullable=False),
            sa.Column("entity_type", sa.String(length=64), nullable=False),
            sa.Column("entity_id", sa.String(length=64), nullable=True),
            sa.Column("changes", sa.JSON(), nullable=False),
            sa.Column("request_metadata", sa.JSON(), nullable=False),
            sa.Column("ip_address", sa.String(length=64), nullable=True),
            sa.Column("user_agent", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["user_id"], ["user.id"], name="fk_audit_log_user_id"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_log_user_id", "audit_log", ["user_id"])
        op.create_index("ix_audit_log_action", "audit_log", ["action"])
        op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
        op.create_index("ix_audit_log_entity", "audit_log", ["entity_type", "entity_id"])
        print("[INFO] Created audit_log table.")


def downgrade():
    op.drop_table("audit_log")
    op.drop_table("project")
    op.drop_table("user")
    op.drop_table("role")
