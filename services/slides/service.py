"""Slide creation, listing and bulk import."""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.database import Slide
from services.collaboration.errors import ForbiddenError, PersistenceError, SlideNotFoundError
from services.projects.service import require_member
from shared.models import SlideCreate, SlideImport
from shared.utils import default_slide_title, setup_logging, utcnow

logger = setup_logging("slide-service")


class SlideService:
    """
    Read and create slides on behalf of an authenticated member.

    Updates and deletions are not here: they go through the edit coordinator
    so every write path shares one authorization and broadcast policy.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _require_editor(self, project_id: str, user_id: str) -> None:
        member = require_member(self.db, project_id, user_id)
        if not member.role.can_edit:
            raise ForbiddenError("Viewers cannot modify slides")

    def create_slide(self, request: SlideCreate, user_id: str) -> Slide:
        self._require_editor(request.project_id, user_id)
        values = request.model_dump()
        values["title"] = default_slide_title(request.title)
        slide = Slide(**values)
        self.db.add(slide)
        self._commit("create slide")
        self.db.refresh(slide)
        logger.info(f"Slide {slide.id} created in {slide.project_id}")
        return slide

    def list_slides(self, project_id: str, user_id: str) -> list[Slide]:
        """Slides of a project ordered by creation time."""
        require_member(self.db, project_id, user_id)
        return (
            self.db.query(Slide)
            .filter(Slide.project_id == project_id)
            .order_by(Slide.created_at, Slide.id)
            .all()
        )

    def get_slide(self, slide_id: str, user_id: str) -> Slide:
        slide = self.db.get(Slide, slide_id)
        if slide is None:
            raise SlideNotFoundError(f"Slide {slide_id} not found")
        require_member(self.db, slide.project_id, user_id)
        return slide

    def create_many(self, project_id: str, slides: list[SlideImport], user_id: str) -> list[Slide]:
        """
        Import slides in one transaction, appended after the existing ones.

        Titles, slide types, bullet points and data payloads are normalized so
        loosely-shaped generated or exported decks can be stored as-is.
        """
        self._require_editor(project_id, user_id)
        base = utcnow()
        created = []
        for index, item in enumerate(slides):
            # Distinct timestamps keep the import order under created_at sorting
            stamp = base + timedelta(microseconds=index)
            slide = Slide(
                project_id=project_id,
                created_at=stamp,
                updated_at=stamp,
                **item.normalized(index, len(slides)),
            )
            self.db.add(slide)
            created.append(slide)
        self._commit("import slides")
        for slide in created:
            self.db.refresh(slide)
        logger.info(f"Imported {len(created)} slides into {project_id}")
        return created

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise PersistenceError(f"Failed to {action}") from e
