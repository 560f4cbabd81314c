"""create nora schema

Revision ID: 20261001_0001
Revises: None
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None


theme_enum = sa.Enum("auto", "hell", "dunkel", name="theme")
notification_preference_enum = sa.Enum("email", "mobile", "beide", "keine", name="notification_preference")
friend_request_status_enum = sa.Enum("pending", "accepted", "rejected", name="friend_request_status")


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=50), nullable=False),
        sa.Column("keycloak_realm_id", sa.String(length=100), nullable=False),
        sa.Column("keycloak_url", sa.String(length=255), nullable=False),
        sa.Column("keycloak_client_id", sa.String(length=100), nullable=False, server_default="nora-frontend"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    op.create_table(
        "zenturien",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("year", sa.String(length=10), nullable=False, server_default=""),
        sa.UniqueConstraint("tenant_id", "name", name="uq_zenturien_tenant_name"),
    )
    op.create_index("ix_zenturien_tenant_id", "zenturien", ["tenant_id"])

    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("module_number", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("year", sa.String(length=10), nullable=False, server_default=""),
        sa.UniqueConstraint("tenant_id", "module_number", name="uq_courses_tenant_module"),
    )
    op.create_index("ix_courses_tenant_id", "courses", ["tenant_id"])

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_number", sa.String(length=50), nullable=False),
        sa.Column("building", sa.String(length=10), nullable=False, server_default=""),
        sa.Column("floor", sa.String(length=10), nullable=False, server_default=""),
        sa.Column("room_name", sa.String(length=255), nullable=True),
        sa.UniqueConstraint("tenant_id", "room_number", name="uq_rooms_tenant_number"),
    )
    op.create_index("ix_rooms_tenant_id", "rooms", ["tenant_id"])

    op.create_table(
        "timetables",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("zenturie_id", sa.Integer(), sa.ForeignKey("zenturien.id", ondelete="CASCADE"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id", ondelete="SET NULL"), nullable=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True),
        sa.Column("uid", sa.String(length=255), nullable=False),
        sa.Column("summary", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("professor", sa.String(length=255), nullable=True),
        sa.Column("course_type", sa.String(length=20), nullable=True),
        sa.Column("course_code", sa.String(length=50), nullable=True),
        sa.Column("color", sa.String(length=20), nullable=True),
        sa.Column("border_color", sa.String(length=20), nullable=True),
        sa.UniqueConstraint("uid", "zenturie_id", name="idx_uid_zenturie"),
    )
    op.create_index("ix_timetables_tenant_id", "timetables", ["tenant_id"])
    op.create_index("ix_timetables_zenturie_id", "timetables", ["zenturie_id"])
    op.create_index("ix_timetables_course_id", "timetables", ["course_id"])
    op.create_index("ix_timetables_room_id", "timetables", ["room_id"])
    op.create_index("ix_timetables_start_time", "timetables", ["start_time"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("keycloak_user_id", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=False),
        sa.Column("initials", sa.String(length=2), nullable=False),
        sa.Column("zenturie_id", sa.Integer(), sa.ForeignKey("zenturien.id", ondelete="SET NULL"), nullable=True),
        sa.Column("subscription_uuid", sa.String(length=255), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("tenant_id", "keycloak_user_id", name="uq_users_tenant_subject"),
    )
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_zenturie_id", "users", ["zenturie_id"])

    op.create_table(
        "user_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("theme", theme_enum, nullable=False, server_default="auto"),
        sa.Column("notification_preference", notification_preference_enum, nullable=False, server_default="beide"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "custom_hours",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True),
        sa.Column("custom_location", sa.String(length=255), nullable=True),
        sa.CheckConstraint("(room_id IS NULL) <> (custom_location IS NULL)", name="ck_custom_hours_room_xor_location"),
        sa.CheckConstraint("start_time < end_time", name="ck_custom_hours_time_order"),
    )
    op.create_index("ix_custom_hours_user_id", "custom_hours", ["user_id"])
    op.create_index("ix_custom_hours_room_id", "custom_hours", ["room_id"])
    op.create_index("ix_custom_hours_start_time", "custom_hours", ["start_time"])

    op.create_table(
        "exams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True),
        sa.CheckConstraint("duration IN (30, 45, 60, 90, 120)", name="ck_exams_duration"),
        sa.UniqueConstraint("user_id", "course_id", "start_time", "duration", name="uq_exams_user_group"),
    )
    op.create_index("ix_exams_course_id", "exams", ["course_id"])
    op.create_index("ix_exams_user_id", "exams", ["user_id"])
    op.create_index("ix_exams_room_id", "exams", ["room_id"])
    op.create_index("ix_exams_start_time", "exams", ["start_time"])

    op.create_table(
        "friend_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("requester_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("receiver_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", friend_request_status_enum, nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_friend_requests_requester_id", "friend_requests", ["requester_id"])
    op.create_index("ix_friend_requests_receiver_id", "friend_requests", ["receiver_id"])
    op.create_index("ix_friend_requests_status", "friend_requests", ["status"])


def downgrade() -> None:
    op.drop_table("friend_requests")
    op.drop_table("exams")
    op.drop_table("custom_hours")
    op.drop_table("user_settings")
    op.drop_table("users")
    op.drop_table("timetables")
    op.drop_table("rooms")
    op.drop_table("courses")
    op.drop_table("zenturien")
    op.drop_table("tenants")
    bind = op.get_bind()
    friend_request_status_enum.drop(bind, checkfirst=True)
    notification_preference_enum.drop(bind, checkfirst=True)
    theme_enum.drop(bind, checkfirst=True)
