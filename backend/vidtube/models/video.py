# vidtube/models/video.py
import uuid
from tortoise import fields, models


class Video(models.Model):
    """
    Uploaded video. Only read here (watch history); created by the upload service.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    video_file = fields.CharField(max_length=1024)  # Cloudinary URL
    thumbnail = fields.CharField(max_length=1024)   # Cloudinary URL
    title = fields.CharField(max_length=255)
    description = fields.TextField(default="")
    duration = fields.FloatField(default=0)  # Seconds, as reported by the media host
    views = fields.IntField(default=0)
    is_published = fields.BooleanField(default=True)
    owner = fields.ForeignKeyField(
        "models.User",
        related_name="videos",
        on_delete=fields.CASCADE,
    )
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "videos"
