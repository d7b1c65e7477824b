# vidtube/models/subscription.py
"""
Database model for subscriptions.
A directed edge: `subscriber` follows `channel`. Both ends are users.
"""
import uuid
from tortoise import fields, models


class Subscription(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    subscriber = fields.ForeignKeyField(
        "models.User",
        related_name="subscriptions",
        on_delete=fields.CASCADE,
    )  # The user who subscribes
    channel = fields.ForeignKeyField(
        "models.User",
        related_name="subscribers",
        on_delete=fields.CASCADE,
    )  # The user being subscribed to
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "subscriptions"
        # No unique_together on (subscriber, channel); duplicate edges each count
