"""
SQLAlchemy Core table definitions for the crawler store.

Tables are declared as plain `Table` objects (no ORM models); the Alembic
migrations under `migrations/versions/` create the same schema.
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

metadata = sa.MetaData()

page_type_enum = sa.Enum("list", "olx_item", "storia_item", name="page_type")
crawl_status_enum = sa.Enum("new", "retrying", "completed", "failed", name="crawl_status")
seller_type_enum = sa.Enum("private", "company", name="seller_type")
property_layout_enum = sa.Enum("wagon", "semi_detached", "detached", name="property_layout")
cardinal_direction_enum = sa.Enum("north", "south", "east", "west", name="cardinal_direction")
property_type_enum = sa.Enum("apartment", "house", name="property_type")
currency_enum = sa.Enum("EUR", "RON", "USD", name="currency")

sessions = sa.Table(
    "sessions",
    metadata,
    sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.Column("crawled_at", sa.DateTime(timezone=True), nullable=True),
)

crawler_queue = sa.Table(
    "crawler_queue",
    metadata,
    sa.Column(
        "session_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("sessions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column("url", sa.Text(), primary_key=True),
    sa.Column("page_type", page_type_enum, nullable=False),
    sa.Column("status", crawl_status_enum, server_default="new", nullable=False),
    sa.Column(
        "retries",
        postgresql.ARRAY(sa.Text()),
        server_default=sa.text("'{}'::text[]"),
        nullable=False,
    ),
    sa.Column("added_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.Column("not_before", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.Column("failure_error", sa.Text(), nullable=True),
    sa.Index("ix_crawler_queue_session_status_not_before", "session_id", "status", "not_before"),
)

pages = sa.Table(
    "pages",
    metadata,
    sa.Column(
        "session_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("sessions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column("url", sa.Text(), primary_key=True),
    sa.Column("page_type", page_type_enum, nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("crawled_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.Index("ix_pages_session_page_type", "session_id", "page_type"),
)

classifieds = sa.Table(
    "classifieds",
    metadata,
    sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True),
    sa.Column("url", sa.Text(), primary_key=True),
    sa.Column("revision", sa.Integer(), primary_key=True),
    sa.Column("extracted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
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

extraction_failures = sa.Table(
    "extraction_failures",
    metadata,
    sa.Column("session_id", postgresql.UUID(as_uuid=True), primary_key=True),
    sa.Column("url", sa.Text(), primary_key=True),
    sa.Column("error", sa.Text(), nullable=False),
    sa.Column("failed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    sa.ForeignKeyConstraint(
        ["session_id", "url"],
        ["pages.session_id", "pages.url"],
        name="fk_extraction_failures_page",
        ondelete="CASCADE",
    ),
)
