"""Specialists table model using SQLAlchemy Core.

Specialists are owned by the clinic directory; the scheduler only reads them.
"""

from sqlalchemy import Boolean, Column, DateTime, String, Table, Text, Uuid, func, text

from consult_scheduler.models.metadata import metadata

specialists = Table(
    "specialists",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("full_name", Text, nullable=False),
    Column("specialty", String(100), nullable=False, index=True),
    Column("email", String(255), nullable=True),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
