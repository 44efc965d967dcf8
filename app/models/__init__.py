from app.models.analytics import PostAnalytics, UserAnalytics, ViewTrack
from app.models.media import Photo, Video
from app.models.notification import Notification
from app.models.social import (
    Bookmark,
    Collection,
    Comment,
    Like,
    Post,
    Reaction,
    Report,
    Share,
    collection_posts,
)
from app.models.user import Follow, User

__all__ = [
    "Bookmark",
    "Collection",
    "Comment",
    "Follow",
    "Like",
    "Notification",
    "Photo",
    "Post",
    "PostAnalytics",
    "Reaction",
    "Report",
    "Share",
    "User",
    "UserAnalytics",
    "UserAnalytics",
    "Video",
    "ViewTrack",
    "collection_posts",
]
