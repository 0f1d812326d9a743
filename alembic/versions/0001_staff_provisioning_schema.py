from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision = "0001_staff_provisioning_schema"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = JSONB().with_variant(sa.JSON(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, server_default=""),
        sa.Column("type", sa.String(length=30), nullable=False, server_default="SAAS"),
        sa.Column("omni_gateway_api_key", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "departments",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("code", sa.String(length=40), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_departments_client_id", "departments", ["client_id"], unique=False)

    op.create_table(
        "staff",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("department_id", sa.String(), sa.ForeignKey("departments.id"), nullable=True),
        sa.Column("employee_id", sa.String(length=20), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("role", sa.String(length=30), nullable=False, server_default="STAFF"),
        sa.Column("sub_role", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
        sa.Column("date_of_join", sa.DateTime(timezone=True), nullable=False),
        sa.Column("can_access_app", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("performance_score", sa.Float(), nullable=True),
        sa.Column("communication_preferences", JSON_TYPE, nullable=True),
        sa.Column("documents", JSON_TYPE, nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("emergency_contact", sa.String(), nullable=True),
        sa.Column("avatar", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_staff_client_id", "staff", ["client_id"], unique=False)
    op.create_index("ix_staff_department_id", "staff", ["department_id"], unique=False)
    op.create_index("ix_staff_employee_id", "staff", ["employee_id"], unique=True)
    op.create_index("ix_staff_email", "staff", ["email"], unique=False)

    op.create_table(
        "staff_communications",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("staff_id", sa.String(), sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=10), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="SENT"),
        sa.Column("meta", JSON_TYPE, nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_staff_communications_staff_id", "staff_communications", ["staff_id"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=True),
        sa.Column("supabase_id", sa.String(), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="STAFF"),
        sa.Column("external_ids", JSON_TYPE, nullable=True),
        sa.Column("communication_preferences", JSON_TYPE, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_client_id", "users", ["client_id"], unique=False)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_supabase_id", "users", ["supabase_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_users_supabase_id", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_client_id", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_staff_communications_staff_id", table_name="staff_communications")
    op.drop_table("staff_communications")
    op.drop_index("ix_staff_email", table_name="staff")
    op.drop_index("ix_staff_employee_id", table_name="staff")
    op.drop_index("ix_staff_department_id", table_name="staff")
    op.drop_index("ix_staff_client_id", table_name="staff")
    op.drop_table("staff")
    op.drop_index("ix_departments_client_id", table_name="departments")
    op.drop_table("departments")
    op.drop_table("clients")
