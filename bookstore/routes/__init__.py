"""
HTTP routers for the bookstore API.
"""

from bookstore.routes import auth, books, orders, reviews, users

__all__ = ["auth", "books", "orders", "reviews", "users"]
