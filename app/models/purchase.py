"""
Template Purchase Model
One completed transaction of a buyer for one template
"""

import enum
from sqlalchemy import Column, Integer, String, DateTime, Numeric, JSON, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from database import Base


class PurchaseStatus(str, enum.Enum):
    """Purchase status enumeration"""
    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class Purchase(Base):
    """Template purchase transaction model"""
    __tablename__ = "purchases"
    __table_args__ = (
        UniqueConstraint("user_id", "template_id", name="unique_user_template_purchase"),
        Index("idx_purchases_seller_id", "seller_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)  # buyer
    template_id = Column(Integer, ForeignKey("templates.id"), nullable=False, index=True)
    seller_id = Column(String(64), nullable=False)

    # Transaction details
    purchase_price = Column(Numeric(10, 2), nullable=False)
    transaction_id = Column(String(255), unique=True, nullable=True)  # gateway session id
    payment_method = Column(String(50), nullable=True)  # stripe, paypal, etc

    status = Column(String(20), nullable=False, default=PurchaseStatus.COMPLETED.value)
    purchase_date = Column(DateTime, server_default=func.now(), nullable=False)

    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=True)

    # Relationships
    template = relationship("Template", back_populates="purchases")

    def __repr__(self):
        return f"<Purchase(id={self.id}, user_id='{self.user_id}', template_id={self.template_id}, price={self.purchase_price})>"
