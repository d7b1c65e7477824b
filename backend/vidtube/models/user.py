# vidtube/models/user.py
"""
Database model for users.
Represents a user account (and the channel it owns): credentials, profile
media, the single active refresh token and the watch history.
"""
import uuid
from tortoise import fields, models

from vidtube.core.security import hash_password, verify_password


class User(models.Model):
    """
    User database model.

    Relationships:
    - Has many Videos (one-to-many, via related_name="videos")
    - Subscriptions as subscriber ("subscriptions") and as channel ("subscribers")

    Security:
    - Password is stored as an Argon2 hash, set only through set_password()
    - refresh_token holds the one refresh token currently accepted for this user
    - Username and email are unique and stored lowercase
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)  # Primary key: unique user identifier
    username = fields.CharField(max_length=64, unique=True, index=True)  # Lowercase handle, also the channel name
    email = fields.CharField(max_length=255, unique=True, index=True)  # Lowercase email address
    full_name = fields.CharField(max_length=128, index=True)
    avatar = fields.CharField(max_length=1024)  # Cloudinary URL
    cover_image = fields.CharField(max_length=1024, default="")  # Cloudinary URL, empty when not uploaded
    password_hash = fields.CharField(max_length=255)
    refresh_token = fields.TextField(null=True)
    # Ordered video ids (strings), oldest first
    watch_history = fields.JSONField(default=list)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "users"

    def set_password(self, plain: str) -> None:
        """Hash and assign a new password. The only place a password hash is produced."""
        self.password_hash = hash_password(plain)

    def is_password_correct(self, plain: str) -> bool:
        return verify_password(plain, self.password_hash)

    def __str__(self) -> str:
        return self.username
