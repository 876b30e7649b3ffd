"""
Customer and staff accounts
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from trendify.core.database import Base, utcnow


class User(Base):
    """
    Local account row, linked to the identity provider by external_id.

    Guest checkouts create rows without an external_id.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(255), unique=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    role = Column(String(20), nullable=False, default="customer")
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=utcnow)
    last_login_at = Column(DateTime)

    addresses = relationship("Address", back_populates="user", cascade="all, delete-orphan")
    orders = relationship("Order", back_populates="user")
    cart = relationship("Cart", back_populates="user", uselist=False, cascade="all, delete-orphan")


class Address(Base):
    """Saved address book entry"""
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    full_name = Column(String(255), nullable=False)
    street = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), default="")
    zip_code = Column(String(20), default="")
    country = Column(String(2), default="GH")
    phone = Column(String(50), default="")
    is_default = Column(Boolean, default=False)

    user = relationship("User", back_populates="addresses")
