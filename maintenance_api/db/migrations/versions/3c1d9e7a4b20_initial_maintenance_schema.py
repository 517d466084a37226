"""Initial maintenance schema with row-level security.

- auth_users, profiles, role_permissions
- sectors, areas, brands, branches
- fault_categories, maintenance_assets, tickets, ticket_comments
- spare_parts, inventory_transactions
- system_settings, notification_templates, form_field_configs
- system_logs

Also creates helper functions used by the policies:
  app_current_user()  -> uuid of the acting user (NULL in service context)
  app_is_service()    -> true when no acting user is set
  app_user_role()     -> role of the acting user from profiles
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1d9e7a4b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UUID_DEFAULT = sa.text("uuid_generate_v4()")
NOW = sa.text("now()")
JSONB_EMPTY = sa.text("'{}'::jsonb")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    ]


def _named_lookup(table: str, *extra: sa.Column) -> None:
    op.create_table(
        table,
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("name_ar", sa.Text(), nullable=False),
        *extra,
        *_timestamps(),
        sa.UniqueConstraint("name_ar", name=f"uq_{table}_name_ar"),
    )


def _enable_rls(table: str, using: str, check: str | None = None) -> None:
    op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;")
    op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY;")
    op.execute(
        f"""
        CREATE POLICY {table}_row_access ON {table}
        USING (app_is_service() OR {using})
        WITH CHECK (app_is_service() OR {check or using});
        """
    )


RLS_TABLES = ["tickets", "ticket_comments", "inventory_transactions", "system_logs"]


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp";')

    # Accounts and profiles
    op.create_table(
        "auth_users",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("hashed_password", sa.Text(), nullable=False),
        sa.Column("email_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_metadata", postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
        sa.Column("app_metadata", postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
        sa.Column("banned_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sign_in_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_auth_users_email"),
    )

    # Organization
    _named_lookup("sectors")
    _named_lookup(
        "areas",
        sa.Column("sector_id", sa.UUID(), sa.ForeignKey("sectors.id", ondelete="RESTRICT"), nullable=True, index=True),
    )
    _named_lookup("brands", sa.Column("logo_url", sa.Text(), nullable=True))
    _named_lookup(
        "branches",
        sa.Column("area_id", sa.UUID(), sa.ForeignKey("areas.id", ondelete="RESTRICT"), nullable=True, index=True),
        sa.Column("brand_id", sa.UUID(), sa.ForeignKey("brands.id", ondelete="SET NULL"), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("location_lat", sa.Numeric(10, 7), nullable=True),
        sa.Column("location_lng", sa.Numeric(10, 7), nullable=True),
        sa.Column("google_map_link", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.UUID(), sa.ForeignKey("auth_users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), server_default="technician", nullable=False),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("branch_id", sa.UUID(), sa.ForeignKey("branches.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_sector_id", sa.UUID(), sa.ForeignKey("sectors.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_area_id", sa.UUID(), sa.ForeignKey("areas.id", ondelete="SET NULL"), nullable=True),
        sa.Column("specialization", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'manager', 'technician', 'user')", name="ck_profiles_role"),
    )

    op.create_table(
        "role_permissions",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("feature_key", sa.Text(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("role", "feature_key", name="uq_role_permissions_role_feature"),
    )

    # Maintenance
    _named_lookup(
        "fault_categories",
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
    )

    op.create_table(
        "maintenance_assets",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("serial_number", sa.Text(), nullable=True),
        sa.Column("branch_id", sa.UUID(), sa.ForeignKey("branches.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("category_id", sa.UUID(), sa.ForeignKey("fault_categories.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        sa.Column("purchase_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("purchase_date", sa.Date(), nullable=True),
        sa.Column("qr_code", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("qr_code", name="uq_maintenance_assets_qr_code"),
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("ticket_number", sa.Integer(), sa.Identity(always=False), nullable=False),
        sa.Column("branch_id", sa.UUID(), sa.ForeignKey("branches.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("asset_id", sa.UUID(), sa.ForeignKey("maintenance_assets.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("category_id", sa.UUID(), sa.ForeignKey("fault_categories.id", ondelete="SET NULL"), nullable=True),
        sa.Column("fault_category", sa.Text(), nullable=True),
        sa.Column("technician_id", sa.UUID(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("created_by", sa.UUID(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.Text(), server_default="open", nullable=False, index=True),
        sa.Column("priority", sa.Text(), server_default="medium", nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("images_url", postgresql.ARRAY(sa.Text()), server_default=sa.text("'{}'::text[]"), nullable=False),
        sa.Column("form_data", postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
        sa.Column("repair_cost", sa.Numeric(14, 2), server_default="0", nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("start_work_lat", sa.Numeric(10, 7), nullable=True),
        sa.Column("start_work_lng", sa.Numeric(10, 7), nullable=True),
        sa.Column("end_work_lat", sa.Numeric(10, 7), nullable=True),
        sa.Column("end_work_lng", sa.Numeric(10, 7), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("ticket_number", name="uq_tickets_ticket_number"),
        sa.CheckConstraint(
            "status IN ('open', 'in_progress', 'pending_approval', 'resolved', 'closed', 'rejected')",
            name="ck_tickets_status",
        ),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high', 'critical')", name="ck_tickets_priority"),
        sa.Index("ix_tickets_created_at", "created_at"),
    )

    op.create_table(
        "ticket_comments",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("ticket_id", sa.UUID(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )

    # Inventory
    op.create_table(
        "spare_parts",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("name_ar", sa.Text(), nullable=False),
        sa.Column("part_number", sa.Text(), nullable=True),
        sa.Column("category_id", sa.UUID(), sa.ForeignKey("fault_categories.id", ondelete="SET NULL"), nullable=True),
        sa.Column("quantity", sa.Integer(), server_default="0", nullable=False),
        sa.Column("min_threshold", sa.Integer(), server_default="0", nullable=False),
        sa.Column("price", sa.Numeric(14, 2), server_default="0", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("part_number", name="uq_spare_parts_part_number"),
        sa.CheckConstraint("quantity >= 0", name="ck_spare_parts_quantity_non_negative"),
    )

    op.create_table(
        "inventory_transactions",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("part_id", sa.UUID(), sa.ForeignKey("spare_parts.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("ticket_id", sa.UUID(), sa.ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("change_amount", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )

    # Configuration
    op.create_table(
        "system_settings",
        sa.Column("key", sa.Text(), primary_key=True),
        sa.Column("value", postgresql.JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "notification_templates",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("key", sa.Text(), nullable=False),
        sa.Column("template_ar", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("key", name="uq_notification_templates_key"),
    )
    op.create_table(
        "form_field_configs",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("form_id", sa.Text(), nullable=False, index=True),
        sa.Column("field_key", sa.Text(), nullable=False),
        sa.Column("label_ar", sa.Text(), nullable=False),
        sa.Column("label_en", sa.Text(), nullable=True),
        sa.Column("is_visible", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("is_required", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("field_type", sa.Text(), server_default="text", nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column("options", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("form_id", "field_key", name="uq_form_field_configs_form_field"),
    )

    # Activity log
    op.create_table(
        "system_logs",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=UUID_DEFAULT),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column("entity_name", sa.Text(), nullable=False),
        sa.Column("details", postgresql.JSONB(), server_default=JSONB_EMPTY, nullable=False),
        *_timestamps(),
        sa.Index("ix_system_logs_created_at", "created_at"),
    )

    # Policy helpers
    op.execute(
        """
        CREATE OR REPLACE FUNCTION app_current_user() RETURNS uuid AS $$
            SELECT NULLIF(current_setting('app.user_id', true), '')::uuid;
        $$ LANGUAGE sql STABLE;
        """
    )
    op.execute(
        """
        CREATE OR REPLACE FUNCTION app_is_service() RETURNS boolean AS $$
            SELECT app_current_user() IS NULL;
        $$ LANGUAGE sql STABLE;
        """
    )
    op.execute(
        """
        CREATE OR REPLACE FUNCTION app_user_role() RETURNS text AS $$
            SELECT role FROM profiles WHERE id = app_current_user();
        $$ LANGUAGE sql STABLE SECURITY DEFINER;
        """
    )

    # Staff see everything; technicians see their own and their area's tickets.
    _enable_rls(
        "tickets",
        using=(
            "app_user_role() IN ('admin', 'manager') "
            "OR technician_id = app_current_user() "
            "OR created_by = app_current_user() "
            "OR branch_id IN (SELECT b.id FROM branches b JOIN profiles p ON p.assigned_area_id = b.area_id "
            "WHERE p.id = app_current_user())"
        ),
    )
    _enable_rls(
        "ticket_comments",
        using="EXISTS (SELECT 1 FROM tickets t WHERE t.id = ticket_id)",
        check="user_id = app_current_user() AND EXISTS (SELECT 1 FROM tickets t WHERE t.id = ticket_id)",
    )
    _enable_rls(
        "inventory_transactions",
        using="app_user_role() IN ('admin', 'manager') OR user_id = app_current_user()",
    )
    _enable_rls(
        "system_logs",
        using="app_user_role() = 'admin' OR user_id = app_current_user()",
        check="user_id = app_current_user()",
    )


def downgrade() -> None:
    for tbl in RLS_TABLES:
        op.execute(f"DROP POLICY IF EXISTS {tbl}_row_access ON {tbl};")
        op.execute(f"ALTER TABLE {tbl} DISABLE ROW LEVEL SECURITY;")

    op.drop_table("system_logs")
    op.drop_table("form_field_configs")
    op.drop_table("notification_templates")
    op.drop_table("system_settings")
    op.drop_table("inventory_transactions")
    op.drop_table("spare_parts")
    op.drop_table("ticket_comments")
    op.drop_table("tickets")
    op.drop_table("maintenance_assets")
    op.drop_table("fault_categories")
    op.drop_table("role_permissions")
    op.drop_table("profiles")
    op.drop_table("branches")
    op.drop_table("brands")
    op.drop_table("areas")
    op.drop_table("sectors")
    op.drop_table("auth_users")

    op.execute("DROP FUNCTION IF EXISTS app_user_role();")
    op.execute("DROP FUNCTION IF EXISTS app_is_service();")
    op.execute("DROP FUNCTION IF EXISTS app_current_user();")

    # Extensions are left installed (safe and idempotent); no drop needed.
