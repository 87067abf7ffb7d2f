"""Initial line sync schema

Revision ID: 20261016_initial
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261016_initial"
down_revision = None
branch_labels = None
depends_on = None


NOW = sa.text("(CURRENT_TIMESTAMP)")


def upgrade():
    op.create_table(
        "families",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("fam_perm_id", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(64), nullable=True),
        sa.Column("last_name", sa.String(64), nullable=True),
        sa.Column("balance", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("families", schema=None) as batch_op:
        batch_op.create_index("ix_families_fam_perm_id", ["fam_perm_id"], unique=True)

    op.create_table(
        "student_statuses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(1), nullable=False),
        sa.Column("approval_method", sa.String(16), nullable=True),
        sa.Column("approval_code", sa.String(16), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("cloud_id", sa.Integer(), nullable=False),
        sa.Column("lcs_id", sa.Integer(), nullable=True),
        sa.Column("fam_perm_id", sa.Integer(), nullable=True),
        sa.Column("first_name", sa.String(64), nullable=True),
        sa.Column("last_name", sa.String(64), nullable=True),
        sa.Column("grade", sa.String(8), nullable=True),
        sa.Column("school_code", sa.String(16), nullable=True),
        sa.Column("status_id", sa.Integer(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["fam_perm_id"], ["families.fam_perm_id"]),
        sa.ForeignKeyConstraint(["status_id"], ["student_statuses.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("students", schema=None) as batch_op:
        batch_op.create_index("ix_students_cloud_id", ["cloud_id"], unique=True)
        batch_op.create_index("ix_students_lcs_id", ["lcs_id"], unique=False)
        batch_op.create_index("ix_students_family", ["fam_perm_id"], unique=False)

    op.create_table(
        "menu_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(128), nullable=True),
        sa.Column("item_type", sa.String(1), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("menu_items", schema=None) as batch_op:
        batch_op.create_index("ix_menu_items_item_id", ["item_id"], unique=True)

    op.create_table(
        "pos_users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("first_name", sa.String(64), nullable=True),
        sa.Column("last_name", sa.String(64), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("line_access", sa.JSON(), nullable=True),
        sa.Column("line_access_all", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("line_closer", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("pos_users", schema=None) as batch_op:
        batch_op.create_index("ix_pos_users_username", ["username"], unique=True)

    op.create_table(
        "pos_stations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("device_id", sa.String(128), nullable=False),
        sa.Column("browser", sa.String(64), nullable=False),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("mac_address", sa.String(32), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("device_id", "browser", "is_private", name="uq_stations_fingerprint"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "pos_line_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("meal_type", sa.String(1), nullable=False),
        sa.Column("line_num", sa.Integer(), nullable=False),
        sa.Column("line_date", sa.Date(), nullable=False),
        sa.Column("plate_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("open_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("open_user_id", sa.Integer(), nullable=True),
        sa.Column("start_cash", sa.JSON(), nullable=True),
        sa.Column("close_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_user_id", sa.Integer(), nullable=True),
        sa.Column("closer_is_admin", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("end_cash", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["open_user_id"], ["pos_users.id"]),
        sa.ForeignKeyConstraint(["close_user_id"], ["pos_users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meal_type", "line_num", "line_date", name="uq_line_logs_line_day"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("pos_line_logs", schema=None) as batch_op:
        batch_op.create_index("ix_pos_line_logs_line_date", ["line_date"], unique=False)

    op.create_table(
        "pos_station_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("station_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("line_log_id", sa.Integer(), nullable=True),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("abilities", sa.JSON(), nullable=False),
        sa.Column("sync_status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("opened_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_reason", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["station_id"], ["pos_stations.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["pos_users.id"]),
        sa.ForeignKeyConstraint(["line_log_id"], ["pos_line_logs.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("pos_station_sessions", schema=None) as batch_op:
        batch_op.create_index("ix_pos_station_sessions_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_pos_station_sessions_station_id", ["station_id"], unique=False)
        batch_op.create_index("ix_pos_station_sessions_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_pos_station_sessions_sync_status", ["sync_status"], unique=False)
        batch_op.create_index("ix_station_sessions_user_status", ["user_id", "sync_status"], unique=False)
        batch_op.create_index("ix_station_sessions_line_log_status", ["line_log_id", "sync_status"], unique=False)

    op.create_table(
        "pos_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sync_key", sa.String(64), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("family_id", sa.Integer(), nullable=True),
        sa.Column("school_code", sa.String(16), nullable=True),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("item_type", sa.String(1), nullable=True),
        sa.Column("transaction_code", sa.String(1), nullable=True),
        sa.Column("approval_method", sa.String(16), nullable=True),
        sa.Column("approval_code", sa.String(16), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("line_type", sa.String(1), nullable=False),
        sa.Column("line_num", sa.Integer(), nullable=False),
        sa.Column("line_date", sa.Date(), nullable=False),
        sa.Column("pos_id", sa.Integer(), nullable=True),
        sa.Column("station_student_id", sa.String(32), nullable=False),
        sa.Column("station_session_id", sa.Integer(), nullable=True),
        sa.Column("transaction_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("pos_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_pos_transactions_sync_key", ["sync_key"], unique=True)
        batch_op.create_index("ix_pos_transactions_family_id", ["family_id"], unique=False)
        batch_op.create_index("ix_pos_transactions_line_date", ["line_date"], unique=False)
        batch_op.create_index("ix_pos_transactions_station_session_id", ["station_session_id"], unique=False)
        batch_op.create_index("ix_pos_transactions_account_scope", ["student_id", "line_date", "line_type"], unique=False)
        batch_op.create_index("ix_pos_transactions_cash_scope", ["station_student_id", "line_date", "line_type"], unique=False)

    op.create_table(
        "pos_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sync_key", sa.String(64), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("family_id", sa.Integer(), nullable=True),
        sa.Column("school_code", sa.String(16), nullable=True),
        sa.Column("payment_type", sa.String(8), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("memo", sa.String(32), nullable=True),
        sa.Column("check_number", sa.String(32), nullable=True),
        sa.Column("meal_type", sa.String(1), nullable=False),
        sa.Column("line_num", sa.Integer(), nullable=False),
        sa.Column("line_date", sa.Date(), nullable=False),
        sa.Column("station_student_id", sa.String(32), nullable=False),
        sa.Column("station_session_id", sa.Integer(), nullable=True),
        sa.Column("payment_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("pos_payments", schema=None) as batch_op:
        batch_op.create_index("ix_pos_payments_sync_key", ["sync_key"], unique=True)
        batch_op.create_index("ix_pos_payments_family_id", ["family_id"], unique=False)
        batch_op.create_index("ix_pos_payments_line_date", ["line_date"], unique=False)
        batch_op.create_index("ix_pos_payments_station_session_id", ["station_session_id"], unique=False)
        batch_op.create_index("ix_pos_payments_account_scope", ["student_id", "line_date", "meal_type"], unique=False)

    op.create_table(
        "pos_transaction_delete_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sync_key", sa.String(64), nullable=False),
        sa.Column("original_sync_key", sa.String(64), nullable=False),
        sa.Column("original_id", sa.Integer(), nullable=False),
        sa.Column("deleting_user_id", sa.Integer(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("family_id", sa.Integer(), nullable=True),
        sa.Column("school_code", sa.String(16), nullable=True),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("item_type", sa.String(1), nullable=True),
        sa.Column("transaction_code", sa.String(1), nullable=True),
        sa.Column("approval_method", sa.String(16), nullable=True),
        sa.Column("approval_code", sa.String(16), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("line_type", sa.String(1), nullable=False),
        sa.Column("line_num", sa.Integer(), nullable=False),
        sa.Column("line_date", sa.Date(), nullable=False),
        sa.Column("pos_id", sa.Integer(), nullable=True),
        sa.Column("station_student_id", sa.String(32), nullable=False),
        sa.Column("transaction_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("pos_transaction_delete_log", schema=None) as batch_op:
        batch_op.create_index("ix_pos_transaction_delete_log_sync_key", ["sync_key"], unique=True)
        batch_op.create_index("ix_pos_transaction_delete_log_original_sync_key", ["original_sync_key"], unique=False)

    op.create_table(
        "pos_payment_delete_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sync_key", sa.String(64), nullable=False),
        sa.Column("original_sync_key", sa.String(64), nullable=False),
        sa.Column("original_id", sa.Integer(), nullable=False),
        sa.Column("deleting_user_id", sa.Integer(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("family_id", sa.Integer(), nullable=True),
        sa.Column("school_code", sa.String(16), nullable=True),
        sa.Column("payment_type", sa.String(8), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("memo", sa.String(32), nullable=True),
        sa.Column("check_number", sa.String(32), nullable=True),
        sa.Column("meal_type", sa.String(1), nullable=False),
        sa.Column("line_num", sa.Integer(), nullable=False),
        sa.Column("line_date", sa.Date(), nullable=False),
        sa.Column("station_student_id", sa.String(32), nullable=False),
        sa.Column("payment_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("pos_payment_delete_log", schema=None) as batch_op:
        batch_op.create_index("ix_pos_payment_delete_log_sync_key", ["sync_key"], unique=True)
        batch_op.create_index("ix_pos_payment_delete_log_original_sync_key", ["original_sync_key"], unique=False)

    op.create_table(
        "cash_family_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("line_date", sa.Date(), nullable=False),
        sa.Column("line_type", sa.String(1), nullable=False),
        sa.Column("next_family_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("line_date", "line_type", name="uq_cash_family_sequences_scope"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "security_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("station_id", sa.Integer(), nullable=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("resource", sa.String(128), nullable=True),
        sa.Column("action", sa.String(64), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["pos_users.id"]),
        sa.ForeignKeyConstraint(["station_id"], ["pos_stations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("security_events", schema=None) as batch_op:
        batch_op.create_index("ix_security_events_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_security_events_station_id", ["station_id"], unique=False)
        batch_op.create_index("ix_security_events_event_type", ["event_type"], unique=False)
        batch_op.create_index("ix_security_events_success", ["success"], unique=False)
        batch_op.create_index("ix_security_events_user_type", ["user_id", "event_type"], unique=False)
        batch_op.create_index("ix_security_events_occurred", ["occurred_at"], unique=False)


def downgrade():
    for table in (
        "security_events",
        "cash_family_sequences",
        "pos_payment_delete_log",
        "pos_transaction_delete_log",
        "pos_payments",
        "pos_transactions",
        "pos_station_sessions",
        "pos_line_logs",
        "pos_stations",
        "pos_users",
        "menu_items",
        "students",
        "student_statuses",
        "families",
    ):
        op.drop_table(table)
