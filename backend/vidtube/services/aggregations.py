# vidtube/services/aggregations.py
"""
Read models built from several queries: the channel profile (with
subscription counts) and the watch history (with video owners).
"""
import logging
from typing import List, Optional

from fastapi import status

from vidtube.core.errors import ApiError
from vidtube.models.subscription import Subscription
from vidtube.models.user import User
from vidtube.models.video import Video
from vidtube.schemas.user import ChannelProfileOut, OwnerOut
from vidtube.schemas.video import WatchHistoryVideoOut

logger = logging.getLogger("uvicorn.error")


async def get_channel_profile(username: Optional[str], viewer: Optional[User] = None) -> ChannelProfileOut:
    """
    Build the public profile of a channel.

    Args:
        username: Channel's username (any case, surrounding blanks ignored)
        viewer: User looking at the channel; None for an anonymous viewer

    Returns:
        ChannelProfileOut with subscribersCount, channelsSubscribedToCount and
        isSubscribed (whether `viewer` subscribes to this channel)

    Raises:
        ApiError (400): If username is blank
        ApiError (404): If no user has this username
    """
    handle = (username or "").strip().lower()
    if not handle:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "username is missing")

    channel = await User.get_or_none(username=handle)
    if not channel:
        raise ApiError(status.HTTP_404_NOT_FOUND, "Channel does not exist")

    subscribers_count = await Subscription.filter(channel_id=channel.id).count()
    subscribed_to_count = await Subscription.filter(subscriber_id=channel.id).count()
    is_subscribed = False
    if viewer is not None:
        is_subscribed = await Subscription.filter(channel_id=channel.id, subscriber_id=viewer.id).exists()

    return ChannelProfileOut(
        id=str(channel.id),
        fullName=channel.full_name,
        username=channel.username,
        email=channel.email,
        avatar=channel.avatar,
        coverImage=channel.cover_image or "",
        subscribersCount=subscribers_count,
        channelsSubscribedToCount=subscribed_to_count,
        isSubscribed=is_subscribed,
    )


async def get_watch_history(user: User) -> List[WatchHistoryVideoOut]:
    """
    Resolve a user's watch history into videos, in history order.

    Each video's owner is reduced to fullName / username / avatar. Ids that
    no longer resolve to a video are skipped and a repeated id is reported
    once, at its first position.
    """
    ordered_ids: List[str] = []
    for vid in user.watch_history or []:
        key = str(vid)
        if key not in ordered_ids:
            ordered_ids.append(key)
    if not ordered_ids:
        return []

    videos = await Video.filter(id__in=ordered_ids).prefetch_related("owner")
    by_id = {str(v.id): v for v in videos}
    missing = len(ordered_ids) - len(by_id)
    if missing:
        logger.info("[history] user=%s has %d unresolved video ids", user.id, missing)

    history = []
    for key in ordered_ids:
        v = by_id.get(key)
        if v is None:
            continue
        history.append(WatchHistoryVideoOut(
            id=str(v.id),
            videoFile=v.video_file,
            thumbnail=v.thumbnail,
            title=v.title,
            description=v.description,
            duration=v.duration,
            views=v.views,
            isPublished=v.is_published,
            owner=OwnerOut(fullName=v.owner.full_name, username=v.owner.username, avatar=v.owner.avatar),
            createdAt=v.created_at,
            updatedAt=v.updated_at,
        ))
    return history
