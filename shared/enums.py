"""
Enums and constants used across the application.
"""

from enum import Enum


class SlideType(str, Enum):
    """Layout family of a slide."""

    TITLE = "title"
    CONTENT = "content"
    BULLETS = "bullets"
    COMPARISON = "comparison"
    TIMELINE = "timeline"
    STATS = "stats"
    CONCLUSION = "conclusion"


class MemberRole(str, Enum):
    """Role of a user inside a project."""

    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"

    @property
    def can_edit(self) -> bool:
        return self in (MemberRole.OWNER, MemberRole.EDITOR)


class ClientEvent(str, Enum):
    """Events a client sends over the collaboration socket."""

    JOIN_DOCUMENT = "joinDocument"
    LEAVE_DOCUMENT = "leaveDocument"
    EDIT_SLIDE = "editSlide"
    DELETE_SLIDE = "deleteSlide"
    PING = "ping"


class ServerEvent(str, Enum):
    """Events the server emits over the collaboration socket."""

    CONNECTED = "connected"
    USER_JOINED = "userJoined"
    USER_LEFT = "userLeft"
    SLIDE_CREATED = "slideCreated"
    SLIDE_UPDATED = "slideUpdated"
    SLIDE_UPDATE_CONFIRMED = "slideUpdateConfirmed"
    SLIDE_UPDATE_ERROR = "slideUpdateError"
    SLIDE_DELETED = "slideDeleted"
    SLIDE_DELETE_CONFIRMED = "slideDeleteConfirmed"
    SLIDE_DELETE_ERROR = "slideDeleteError"
    MEMBER_ADDED = "memberAdded"
    PONG = "pong"
    ERROR = "error"
