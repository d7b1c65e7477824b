# vidtube/models/__init__.py
"""
Database models module initialization.
Exports all Tortoise ORM models for convenient imports.

Models exported:
- User: Account, credentials, session refresh token and watch history
- Video: Uploaded video owned by a user
- Subscription: Subscriber -> channel edge between two users
"""
from .user import User
from .video import Video
from .subscription import Subscription
