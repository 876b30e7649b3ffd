"""
Repository Layer - Data Access

This layer handles all database queries and returns ORM rows.
Repositories abstract away query details from business logic.
"""
from trendify.repositories.product_repository import ProductRepository
from trendify.repositories.order_repository import OrderRepository

__all__ = [
    'ProductRepository',
    'OrderRepository',
]
