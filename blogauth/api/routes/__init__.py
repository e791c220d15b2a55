"""
API Routes
"""
from blogauth.api.routes import admin_auth, audit

__all__ = ["admin_auth", "audit"]
