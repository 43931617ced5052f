"""
Foreground command handlers invoked by the GUI shell.

Every handler takes the Application as its first argument.
"""

from .auth import login, logout, resume_session
from .notifications import get_notifications, get_unread_count, mark_notifications_read
from .posts import (
    PostResult,
    clear_post_draft,
    create_post,
    get_post_draft,
    save_post_draft,
)
from .timeline import get_author_feed, get_profile, get_timeline, normalize_handle

__all__ = [
    "login",
    "logout",
    "resume_session",
    "get_notifications",
    "get_unread_count",
    "mark_notifications_read",
    "PostResult",
    "create_post",
    "save_post_draft",
    "get_post_draft",
    "clear_post_draft",
    "get_timeline",
    "get_profile",
    "get_author_feed",
    "normalize_handle",
]
