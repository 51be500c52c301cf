"""Real-time collaboration: presence, broadcast and coordinated slide edits."""

from services.collaboration.hub import CollaborationHub

__all__ = ["CollaborationHub"]
