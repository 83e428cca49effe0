"""
User database model.

Identity management lives outside this service; the table is kept so the
authentication dependency can verify that a token's user still exists and
is active.
"""

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from convoy.app.db.session import Base
from convoy.app.models.identifiers import new_object_id


class User(Base):
    """Minimal rider account."""
    __tablename__ = "users"

    id = Column(String(24), primary_key=True, default=new_object_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"
