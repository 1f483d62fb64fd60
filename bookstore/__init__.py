"""
Bookstore REST API.

This package provides:
- CRUD endpoints for users, books, orders and reviews over MongoDB
- Declarative payload validation with field-level error reports
- GitHub OAuth login backed by server-side sessions
- Interactive API documentation at /api-docs
"""
