"""
Product reviews
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from trendify.core.database import Base, utcnow


class Review(Base):
    """
    One review per customer and product; resubmitting edits it

    Hidden until approved. Deleting sets deleted_at and keeps the row.
    """
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_reviews_user_product"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    rating = Column(Integer, nullable=False)
    title = Column(String(255))
    comment = Column(Text)
    images = Column(JSON, default=list)

    # Verified: the customer has a paid order containing the product
    is_verified = Column(Boolean, nullable=False, default=False)
    is_approved = Column(Boolean, nullable=False, default=False, index=True)
    admin_notes = Column(Text)
    deleted_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User")
    product = relationship("Product")
