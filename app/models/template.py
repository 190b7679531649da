"""
Marketplace template model
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Numeric, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from database import Base


class TemplateCategory:
    """Categories that ship with a package.json scaffold"""
    SAAS = "saas"
    BOOKING = "booking"

    NODE_PROJECT_CATEGORIES = (SAAS, BOOKING)


class Template(Base):
    """Website template listed on the marketplace"""
    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)  # seller
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(100), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)

    # Either a single HTML document or a JSON bundle: {html, css, js, files: [{name, content}]}
    code = Column(Text, nullable=False, default="")

    status = Column(String(20), nullable=False, default="draft")  # draft, generating, deployed, published
    featured = Column(Boolean, nullable=False, default=False)

    # Counters, incremented atomically
    sales = Column(Integer, nullable=False, default=0)
    downloads = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    purchases = relationship("Purchase", back_populates="template")

    def __repr__(self):
        return f"<Template(id={self.id}, name='{self.name}', category='{self.category}')>"

    @property
    def ships_node_project(self) -> bool:
        return (self.category or "").lower() in TemplateCategory.NODE_PROJECT_CATEGORIES
