"""Initial schema: users, sessions, inventory, borrows, borrow lines, return records

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("number", sa.String(length=32), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_used_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_reason", sa.String(length=255), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_session_tokens_user_id", "session_tokens", ["user_id"])
    op.create_index("ix_session_tokens_token_hash", "session_tokens", ["token_hash"], unique=True)

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("condition", sa.String(length=32), nullable=False),
        sa.Column("last_stock_update", sa.DateTime(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_items_code", "inventory_items", ["code"], unique=True)

    op.create_table(
        "borrows",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("date_borrow", sa.DateTime(), nullable=False),
        sa.Column("date_return", sa.DateTime(), nullable=True),
        sa.Column("returned_at", sa.DateTime(), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("admin_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_borrows_user_id", "borrows", ["user_id"])
    op.create_index("ix_borrows_admin_id", "borrows", ["admin_id"])
    op.create_index("ix_borrows_user_date", "borrows", ["user_id", "date_borrow"])

    op.create_table(
        "borrow_details",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("borrow_id", sa.Integer(), sa.ForeignKey("borrows.id"), nullable=False),
        sa.Column("inventory_id", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("decided_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_borrow_details_quantity_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_borrow_details_borrow_id", "borrow_details", ["borrow_id"])
    op.create_index("ix_borrow_details_inventory_id", "borrow_details", ["inventory_id"])
    op.create_index("ix_borrow_details_status", "borrow_details", ["status"])

    op.create_table(
        "return_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("borrow_id", sa.Integer(), sa.ForeignKey("borrows.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("date_borrow", sa.DateTime(), nullable=False),
        sa.Column("date_return", sa.DateTime(), nullable=True),
        sa.Column("returned_at", sa.DateTime(), nullable=True),
        sa.Column("late_days", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("late_days >= 0", name="ck_return_records_late_days_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_return_records_borrow_id", "return_records", ["borrow_id"])


def downgrade():
    op.drop_table("return_records")
    op.drop_table("borrow_details")
    op.drop_table("borrows")
    op.drop_table("inventory_items")
    op.drop_table("session_tokens")
    op.drop_table("users")
