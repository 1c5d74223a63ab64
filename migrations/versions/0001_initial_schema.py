from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Enums ---
    page_type_enum = sa.Enum("list", "olx_item", "storia_item", name="page_type")
    crawl_status_enum = sa.Enum("new", "retrying", "completed", "failed", name="crawl_status")
    seller_type_enum = sa.Enum("private", "company", name="seller_type")
    property_layout_enum = sa.Enum(
        "wagon",
        "semi_detached",
        "detached",
        name="property_layout",
    )
    cardinal_direction_enum = sa.Enum(
        "north",
        "south",
        "east",
        "west",
        name="cardinal_direction",
    )
    property_type_enum = sa.Enum("apartment", "house", name="property_type")
    currency_enum = sa.Enum("EUR", "RON", "USD", name="currency")

    # --- Tables ---
    op.create_table(
        "sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("crawled_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "crawler_queue",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("url", sa.Text(), primary_key=True, nullable=False),
        sa.Column("page_type", page_type_enum, nullable=False),
        sa.Column("status", crawl_status_enum, server_default="new", nullable=False),
        sa.Column(
            "retries",
            postgresql.ARRAY(sa.Text()),
            server_default=sa.text("'{}'::text[]"),
            nullable=False,
        ),
        sa.Column(
            "added_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "not_before", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("failure_error", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["session_id"],
            ["sessions.id"],
            name="fk_crawler_queue_session_id",
            ondelete="CASCADE",
        ),
    )

    op.create_table(
        "pages",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("url", sa.Text(), primary_key=True, nullable=False),
        sa.Column("page_type", page_type_enum, nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "crawled_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["session_id"],
            ["sessions.id"],
            name="fk_pages_session_id",
            ondelete="CASCADE",
        ),
    )

    op.create_table(
        "classifieds",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("url", sa.Text(), primary_key=True, nullable=False),
        sa.Column("revision", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "extracted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("currency", currency_enum, nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("seller_name", sa.Text(), nullable=False),
        sa.Column("seller_type", seller_type_enum, nullable=False),
        sa.Column("layout", property_layout_enum, nullable=True),
        sa.Column("orientation", cardinal_direction_enum, nullable=True),
        sa.Column("floor", sa.SmallInteger(), nullable=True),
        sa.Column("surface", sa.Integer(), nullable=True),
        sa.Column("room_count", sa.SmallInteger(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("property_type", property_type_enum, nullable=False),
        sa.Column("negotiable", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.ForeignKeyConstraint(
            ["session_id", "url"],
            ["pages.session_id", "pages.url"],
            name="fk_classifieds_page",
            ondelete="CASCADE",
        ),
    )

    op.create_table(
        "extraction_failures",
        sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("url", sa.Text(), primary_key=True, nullable=False),
        sa.Column("error", sa.Text(), nullable=False),
        sa.Column(
            "failed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(
            ["session_id", "url"],
            ["pages.session_id", "pages.url"],
            name="fk_extraction_failures_page",
            ondelete="CASCADE",
        ),
    )

    # --- Indexes ---
    op.create_index(
        "ix_crawler_queue_session_status_not_before",
        "crawler_queue",
        ["session_id", "status", "not_before"],
    )
    op.create_index(
        "ix_pages_session_page_type",
        "pages",
        ["session_id", "page_type"],
    )


def downgrade() -> None:
    # Drop indexes first.
    op.drop_index("ix_pages_session_page_type", table_name="pages")
    op.drop_index("ix_crawler_queue_session_status_not_before", table_name="crawler_queue")

    # Drop tables.
    op.drop_table("extraction_failures")
    op.drop_table("classifieds")
    op.drop_table("pages")
    op.drop_table("crawler_queue")
    op.drop_table("sessions")

    # Drop enums.
    bind = op.get_bind()
    for enum_name in [
        "currency",
        "property_type",
        "cardinal_direction",
        "property_layout",
        "seller_type",
        "crawl_status",
        "page_type",
    ]:
        postgresql.ENUM(name=enum_name).drop(bind, checkfirst=True)
