"""Initial schema: users, RBAC, riders, documents, acknowledgements, email configs.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Tables:
- users, roles, permissions and the role_permissions / user_roles join tables
- riders and rider_code_counters (one counter row per year)
- rider_documents, acknowledgements
- email_configurations
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ------------------------------------------------------------------
    # Users and RBAC
    # ------------------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False, comment="Login email address (stored lower-case)"),
        sa.Column("phone", sa.String(20), nullable=True, comment="Phone number with country code (e.g., +971501234567)"),
        sa.Column("password_hash", sa.String(255), nullable=False, comment="bcrypt password hash"),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
            comment="Active status - inactive users cannot authenticate",
        ),
        sa.Column(
            "last_login_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Last successful authentication timestamp",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("phone", name="uq_users_phone"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("ix_users_email_active", "users", ["email", "is_active"])

    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False, comment="Canonical permission name: resource.action"),
        sa.Column("resource", sa.String(50), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_permissions_name", "permissions", ["name"], unique=True)
    op.create_index("ix_permissions_resource", "permissions", ["resource"])

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
            comment="Inactive roles grant no permissions",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_roles_name", "roles", ["name"], unique=True)

    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "permission_id",
            sa.Integer(),
            sa.ForeignKey("permissions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("role_id", "permission_id"),
    )
    op.create_index("ix_role_permissions_permission_id", "role_permissions", ["permission_id"])

    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="RESTRICT"), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "role_id"),
    )
    op.create_index("ix_user_roles_role_id", "user_roles", ["role_id"])

    # ------------------------------------------------------------------
    # Riders
    # ------------------------------------------------------------------
    op.create_table(
        "riders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "rider_code",
            sa.String(20),
            nullable=False,
            comment="Human-readable code: PREFIX + YY + zero-padded sequence",
        ),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("nationality", sa.String(100), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("blood_group", sa.String(5), nullable=True),
        sa.Column("language_spoken", sa.String(255), nullable=True),
        sa.Column("emergency_contact", sa.String(200), nullable=True),
        sa.Column("emergency_phone", sa.String(20), nullable=True),
        sa.Column("health_notes", sa.Text(), nullable=True),
        sa.Column("emirates_id", sa.String(50), nullable=True),
        sa.Column("emirates_id_expiry", sa.Date(), nullable=True),
        sa.Column("passport_number", sa.String(50), nullable=True),
        sa.Column("passport_expiry", sa.Date(), nullable=True),
        sa.Column("visa_number", sa.String(50), nullable=True),
        sa.Column("license_number", sa.String(50), nullable=True),
        sa.Column("license_expiry", sa.Date(), nullable=True),
        sa.Column("employee_id", sa.String(50), nullable=True),
        sa.Column("joining_date", sa.Date(), nullable=True),
        sa.Column(
            "employment_status",
            sa.String(20),
            nullable=False,
            server_default="PENDING",
            comment="PENDING | ACTIVE | SUSPENDED | TERMINATED",
        ),
        sa.Column(
            "onboarding_status",
            sa.String(20),
            nullable=False,
            server_default="PENDING",
            comment="PENDING | IN_PROGRESS | COMPLETED | REJECTED",
        ),
        sa.Column("city_of_work", sa.String(100), nullable=True),
        sa.Column("company_sim", sa.String(20), nullable=True, comment="Company SIM number issued to the rider"),
        sa.Column("delivery_partner", sa.String(100), nullable=True),
        sa.Column("delivery_partner_id", sa.String(100), nullable=True),
        sa.Column("insurance_partner", sa.String(100), nullable=True),
        sa.Column("insurance_expiry", sa.Date(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "created_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_riders_email"),
        sa.UniqueConstraint("emirates_id", name="uq_riders_emirates_id"),
        sa.UniqueConstraint("passport_number", name="uq_riders_passport_number"),
        sa.UniqueConstraint("license_number", name="uq_riders_license_number"),
        sa.UniqueConstraint("employee_id", name="uq_riders_employee_id"),
    )
    op.create_index("ix_riders_rider_code", "riders", ["rider_code"], unique=True)
    op.create_index("ix_riders_phone", "riders", ["phone"], unique=True)
    op.create_index("ix_riders_employment_status", "riders", ["employment_status"])
    op.create_index("ix_riders_onboarding_status", "riders", ["onboarding_status"])
    op.create_index("ix_riders_is_active", "riders", ["is_active"])
    op.create_index("ix_riders_created_by_id", "riders", ["created_by_id"])
    op.create_index("ix_riders_status", "riders", ["employment_status", "onboarding_status"])

    op.create_table(
        "rider_code_counters",
        sa.Column("year", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("year"),
    )

    # ------------------------------------------------------------------
    # Documents and acknowledgements
    # ------------------------------------------------------------------
    op.create_table(
        "rider_documents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("rider_id", sa.Integer(), sa.ForeignKey("riders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(30), nullable=False, comment="DocumentType value"),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="PENDING",
            comment="PENDING | VERIFIED | REJECTED",
        ),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("storage_key", sa.String(500), nullable=False, comment="Blob storage key"),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rider_documents_rider_id", "rider_documents", ["rider_id"])

    op.create_table(
        "acknowledgements",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("rider_id", sa.Integer(), sa.ForeignKey("riders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, comment="AcknowledgementType value"),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="PENDING",
            comment="PENDING | ACKNOWLEDGED",
        ),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("storage_key", sa.String(500), nullable=False),
        sa.Column("file_url", sa.String(1000), nullable=True),
        sa.Column(
            "generated_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_acknowledgements_rider_id", "acknowledgements", ["rider_id"])
    op.create_index("ix_acknowledgements_status", "acknowledgements", ["status"])

    # ------------------------------------------------------------------
    # Email configurations
    # ------------------------------------------------------------------
    op.create_table(
        "email_configurations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("host", sa.String(255), nullable=False),
        sa.Column("port", sa.Integer(), nullable=False, server_default="587"),
        sa.Column(
            "secure",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
            comment="Implicit TLS from connect (port 465); STARTTLS otherwise",
        ),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("password", sa.String(500), nullable=False),
        sa.Column("from_email", sa.String(255), nullable=False),
        sa.Column("from_name", sa.String(255), nullable=False, server_default="FLCD Platform"),
        sa.Column("test_email", sa.String(255), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_tested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("test_result", sa.Text(), nullable=True),
        sa.Column(
            "created_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_email_configurations_is_default", "email_configurations", ["is_default"])


def downgrade() -> None:
    op.drop_index("ix_email_configurations_is_default", table_name="email_configurations")
    op.drop_table("email_configurations")

    op.drop_index("ix_acknowledgements_status", table_name="acknowledgements")
    op.drop_index("ix_acknowledgements_rider_id", table_name="acknowledgements")
    op.drop_table("acknowledgements")

    op.drop_index("ix_rider_documents_rider_id", table_name="rider_documents")
    op.drop_table("rider_documents")

    op.drop_table("rider_code_counters")

    for index in (
        "ix_riders_status",
        "ix_riders_created_by_id",
        "ix_riders_is_active",
        "ix_riders_onboarding_status",
        "ix_riders_employment_status",
        "ix_riders_phone",
        "ix_riders_rider_code",
    ):
        op.drop_index(index, table_name="riders")
    op.drop_table("riders")

    op.drop_index("ix_user_roles_role_id", table_name="user_roles")
    op.drop_table("user_roles")
    op.drop_index("ix_role_permissions_permission_id", table_name="role_permissions")
    op.drop_table("role_permissions")
    op.drop_index("ix_roles_name", table_name="roles")
    op.drop_table("roles")
    op.drop_index("ix_permissions_resource", table_name="permissions")
    op.drop_index("ix_permissions_name", table_name="permissions")
    op.drop_table("permissions")

    op.drop_index("ix_users_email_active", table_name="users")
    op.drop_index("ix_users_is_active", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
