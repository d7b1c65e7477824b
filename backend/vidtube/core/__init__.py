# vidtube/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- db: Database configuration and connection management
- errors: ApiError and the failure-envelope exception handlers
- responses: Success envelope builder
- security: Password hashing and access/refresh token handling
"""
