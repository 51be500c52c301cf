"""Collaboration client: reconciliation state and live session."""

from client.session import CollabClient, RemoteOperationError
from client.state import LastSlideError, ReconciliationState

__all__ = ["CollabClient", "LastSlideError", "ReconciliationState", "RemoteOperationError"]
