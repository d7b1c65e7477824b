# vidtube/schemas/video.py
"""
Pydantic schemas for video projections.
"""
from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel

from .user import OwnerOut


class WatchHistoryVideoOut(BaseModel):
    """
    A watched video with its owner collapsed to a single reduced object.
    """
    id: str
    videoFile: str
    thumbnail: str
    title: str
    description: str = ""
    duration: float = 0
    views: int = 0
    isPublished: bool = True
    owner: Optional[OwnerOut] = None
    createdAt: Optional[dt.datetime] = None
    updatedAt: Optional[dt.datetime] = None
