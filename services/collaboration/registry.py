"""In-memory session registry: which live sessions are attached to which document."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Set


@dataclass(frozen=True)
class MembershipChange:
    """Outcome of a join: the document entered and the one left, if any."""

    session_id: str
    joined: str | None = None
    left: str | None = None


class SessionRegistry:
    """
    Map document ids to session sets and sessions to their single document.

    Mutations are synchronous so each one is atomic on the event loop. Callers
    that await between a mutation and its notifications hold the session's
    lock from lock_for() so two operations of one session never interleave.
    The registry is process-local and starts empty after a restart.
    """

    def __init__(self) -> None:
        self._documents: Dict[str, Set[str]] = defaultdict(set)
        self._session_documents: Dict[str, str] = {}
        self._users: Dict[str, str | None] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def open_session(self, session_id: str, user_id: str | None = None) -> None:
        """Admit a connected session. Joins for sessions that are not open are ignored."""
        self._users[session_id] = user_id
        self._locks.setdefault(session_id, asyncio.Lock())

    def close_session(self, session_id: str) -> str | None:
        """
        Remove a session from every membership set, idempotently.

        Returns:
            The document the session was attached to, if any
        """
        self._users.pop(session_id, None)
        self._locks.pop(session_id, None)
        return self._detach(session_id)

    def is_open(self, session_id: str) -> bool:
        return session_id in self._users

    def user_of(self, session_id: str) -> str | None:
        return self._users.get(session_id)

    def lock_for(self, session_id: str) -> asyncio.Lock:
        """Per-session mutex; closed sessions get a throwaway lock."""
        return self._locks.get(session_id) or asyncio.Lock()

    def join(self, session_id: str, document_id: str) -> MembershipChange:
        """Attach a session to a document, leaving its previous document first."""
        if not self.is_open(session_id):
            return MembershipChange(session_id)
        current = self._session_documents.get(session_id)
        if current == document_id:
            return MembershipChange(session_id)
        previous = self._detach(session_id)
        self._documents[document_id].add(session_id)
        self._session_documents[session_id] = document_id
        return MembershipChange(session_id, joined=document_id, left=previous)

    def leave(self, session_id: str, document_id: str) -> bool:
        """Detach a session from a document. Returns False when it was not a member."""
        if self._session_documents.get(session_id) != document_id:
            return False
        self._detach(session_id)
        return True

    def document_of(self, session_id: str) -> str | None:
        return self._session_documents.get(session_id)

    def sessions_in(self, document_id: str) -> list[str]:
        return sorted(self._documents.get(document_id, ()))

    def active_documents(self) -> list[str]:
        return sorted(self._documents)

    def documents_containing(self, session_id: str) -> list[str]:
        """Every document whose set holds the session; at most one entry."""
        return [doc for doc, sessions in self._documents.items() if session_id in sessions]

    def roster(self, document_id: str) -> list[dict[str, str | None]]:
        return [
            {"sessionId": session_id, "userId": self._users.get(session_id)}
            for session_id in self.sessions_in(document_id)
        ]

    def reset(self) -> None:
        self._documents.clear()
        self._session_documents.clear()
        self._users.clear()
        self._locks.clear()

    def _detach(self, session_id: str) -> str | None:
        previous = self._session_documents.pop(session_id, None)
        if previous is not None:
            members = self._documents.get(previous)
            if members is not None:
                members.discard(session_id)
                if not members:
                    self._documents.pop(previous, None)
        return previous
