"""Edit coordinator: authorize, persist and return the canonical slide state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from models.database import ProjectMember, Slide
from services.collaboration.errors import (
    ForbiddenError,
    PatchValidationError,
    PersistenceError,
    SlideNotFoundError,
)
from shared.models import SlidePatch, SlideRecord
from shared.utils import setup_logging, utcnow

logger = setup_logging("edit-coordinator")


@dataclass(frozen=True)
class SlideDeletion:
    """Deletion event produced for broadcast in place of a state snapshot."""

    slide_id: str
    project_id: str
    deleted_by: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return {"slideId": self.slide_id, "projectId": self.project_id, "deletedBy": self.deleted_by}


def require_slide_access(
    db: Session,
    slide_id: str,
    acting_user_id: str | None,
    document_id: str | None = None,
) -> Slide:
    """
    Load a slide and check the acting user may modify it.

    Authorization is skipped when no acting user is supplied (trusted caller).

    Raises:
        SlideNotFoundError: If the slide is absent or belongs to another document
        ForbiddenError: If the acting user is not a member with edit rights
    """
    slide = db.get(Slide, slide_id)
    if slide is None or (document_id is not None and slide.project_id != document_id):
        raise SlideNotFoundError(f"Slide {slide_id} not found")
    if acting_user_id is not None:
        member = (
            db.query(ProjectMember)
            .filter(
                ProjectMember.project_id == slide.project_id,
                ProjectMember.user_id == acting_user_id,
            )
            .first()
        )
        if member is None:
            raise ForbiddenError("You are not a member of this project")
        if not member.role.can_edit:
            raise ForbiddenError("Viewers cannot modify slides")
    return slide


class EditCoordinator:
    """
    Apply single-slide mutations with merge-patch semantics.

    Each write is one UPDATE of the patched columns, so disjoint concurrent
    patches to the same slide all survive and same-field races resolve to
    whichever write reaches the store last. Blocking database work runs on
    the threadpool.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    @staticmethod
    def validate_patch(changes: SlidePatch | dict[str, Any]) -> SlidePatch:
        if isinstance(changes, SlidePatch):
            return changes
        if not isinstance(changes, dict):
            raise PatchValidationError("Changes must be an object")
        try:
            return SlidePatch.model_validate(changes)
        except ValidationError as e:
            raise PatchValidationError(
                "Invalid slide changes", e.errors(include_url=False, include_context=False)
            ) from e

    async def apply_edit(
        self,
        slide_id: str,
        changes: SlidePatch | dict[str, Any],
        acting_user_id: str | None = None,
        document_id: str | None = None,
    ) -> SlideRecord:
        """
        Persist a merge patch and return the full updated slide.

        Args:
            slide_id: Slide to modify
            changes: Sparse field changes; omitted fields keep their values
            acting_user_id: Member performing the edit, or None for trusted callers
            document_id: Document the caller believes the slide belongs to

        Returns:
            The post-write slide record, suitable for broadcast
        """
        patch = self.validate_patch(changes)
        record = await run_in_threadpool(
            self._apply_edit_sync, slide_id, patch.to_changes(), acting_user_id, document_id
        )
        logger.info(f"Slide {slide_id} updated fields={sorted(patch.model_fields_set)}")
        return record

    async def delete_slide(
        self,
        slide_id: str,
        acting_user_id: str | None = None,
        document_id: str | None = None,
    ) -> SlideDeletion:
        """Remove a slide. There is no last-slide guard on the server."""
        deletion = await run_in_threadpool(
            self._delete_slide_sync, slide_id, acting_user_id, document_id
        )
        logger.info(f"Slide {slide_id} deleted from {deletion.project_id}")
        return deletion

    def _apply_edit_sync(
        self,
        slide_id: str,
        changes: dict[str, Any],
        acting_user_id: str | None,
        document_id: str | None,
    ) -> SlideRecord:
        with self.session_factory() as db:
            try:
                require_slide_access(db, slide_id, acting_user_id, document_id)
                result = db.execute(
                    update(Slide)
                    .where(Slide.id == slide_id)
                    .values(**changes, updated_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    db.rollback()
                    raise SlideNotFoundError(f"Slide {slide_id} not found")
                db.commit()
                slide = db.get(Slide, slide_id, populate_existing=True)
                if slide is None:
                    raise SlideNotFoundError(f"Slide {slide_id} not found")
                return SlideRecord.model_validate(slide)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to persist edit of slide {slide_id}: {e}")
                raise PersistenceError("Failed to save slide changes") from e

    def _delete_slide_sync(
        self, slide_id: str, acting_user_id: str | None, document_id: str | None
    ) -> SlideDeletion:
        with self.session_factory() as db:
            try:
                slide = require_slide_access(db, slide_id, acting_user_id, document_id)
                project_id = slide.project_id
                db.delete(slide)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to delete slide {slide_id}: {e}")
                raise PersistenceError("Failed to delete slide") from e
        return SlideDeletion(slide_id=slide_id, project_id=project_id, deleted_by=acting_user_id)
