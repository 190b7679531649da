"""
User model and related functionality
"""

import uuid
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.sql import func

from database import Base


def _generate_user_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    """Marketplace account (buyers and sellers share one table)"""
    __tablename__ = "users"

    # Opaque string ids, issued by the identity provider or generated locally
    id = Column(String(64), primary_key=True, default=_generate_user_id)
    username = Column(String(50), unique=True, index=True, nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    password_changed_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id='{self.id}', email='{self.email}')>"
