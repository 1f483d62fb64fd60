"""
Shared helpers: structured logging setup and request logging.
"""
