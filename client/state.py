"""
Client-side reconciliation of server state with local, unsaved edits.

The state is a plain object driven by the session: it never performs I/O, so
every transition can be exercised directly.

Modes:
    Viewing  - periodic refresh allowed, broadcasts applied in place
    Editing  - a slide is open for modification; refresh suppressed
    Dirty    - a field changed locally; refresh suppressed as well

Saving or cancelling returns to Viewing.

A refresh snapshot may have been read before a broadcast that reached this
client while the fetch was in flight, so snapshots are merged per slide:
the newer ``updated_at`` wins, deleted slides stay deleted and slides created
during the fetch are kept.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from shared.models import MemberRecord, ProjectRecord, SlidePatch, SlideRecord

# Wire name or Python name -> Python name of every editable slide field
EDITABLE_FIELDS = {
    **{name: name for name in SlidePatch.model_fields},
    **{field.alias: name for name, field in SlidePatch.model_fields.items() if field.alias},
}


class LastSlideError(Exception):
    """Raised when deleting the only remaining slide of a document."""


class ReconciliationState:
    """View state of one open document on one client."""

    def __init__(self) -> None:
        self.document_id: str | None = None
        self.name: str | None = None
        self.slides: list[SlideRecord] = []
        self.members: list[MemberRecord] = []
        self.roster: list[dict[str, Any]] = []
        self.open_slide_id: str | None = None
        self.draft: SlideRecord | None = None
        self.changed_fields: set[str] = set()
        self.editing = False
        self.dirty = False
        # Bumped on every local field change
        self.revision = 0
        self._field_revisions: dict[str, int] = {}
        self._deleted_ids: set[str] = set()
        self._created_since_fetch: set[str] = set()

    @property
    def refresh_suppressed(self) -> bool:
        return self.editing or self.dirty

    @property
    def current_slide(self) -> SlideRecord | None:
        """The open slide as the user sees it: the draft when there is one."""
        if self.draft is not None:
            return self.draft
        return self.find(self.open_slide_id)

    def find(self, slide_id: str | None) -> SlideRecord | None:
        for slide in self.slides:
            if slide.id == slide_id:
                return slide
        return None

    def index_of(self, slide_id: str) -> int | None:
        for index, slide in enumerate(self.slides):
            if slide.id == slide_id:
                return index
        return None

    # Server state
    def load(self, document: ProjectRecord | dict[str, Any]) -> None:
        """Initial load: slides sorted by creation time, first slide opened."""
        project = _as_project(document)
        self.document_id = project.id
        self.name = project.name
        self.members = list(project.members)
        self.slides = sorted(project.slides, key=lambda s: s.created_at)
        self._clear_edit()
        self.open_slide_id = self.slides[0].id if self.slides else None

    def begin_refresh(self) -> None:
        """Mark the start of a snapshot fetch."""
        self._created_since_fetch = set()

    def apply_refresh(self, document: ProjectRecord | dict[str, Any]) -> bool:
        """
        Merge a full server snapshot into the slide list, in server order.

        A local record newer than its snapshot entry is kept, slides deleted
        locally are not brought back, and slides created since
        ``begin_refresh`` stay at the end.

        Returns:
            False without touching anything while editing or dirty
        """
        if self.refresh_suppressed:
            return False
        project = _as_project(document)
        local = {slide.id: slide for slide in self.slides}
        merged: list[SlideRecord] = []
        for incoming in project.slides:
            if incoming.id in self._deleted_ids:
                continue
            current = local.get(incoming.id)
            if current is not None and _stamp(current) > _stamp(incoming):
                merged.append(current)
            else:
                merged.append(incoming)
        merged_ids = {slide.id for slide in merged}
        merged.extend(
            slide
            for slide in self.slides
            if slide.id in self._created_since_fetch and slide.id not in merged_ids
        )

        self.name = project.name
        self.members = list(project.members)
        self.slides = merged
        self._created_since_fetch = set()
        if self.find(self.open_slide_id) is None:
            self.open_slide_id = self.slides[0].id if self.slides else None
        return True

    def apply_remote_update(self, record: SlideRecord) -> bool:
        """
        Replace a slide in place by id, without re-sorting.

        The open slide's draft is never touched; the list entry behind it is.
        An update older than the record already held is ignored.
        """
        index = self.index_of(record.id)
        if index is None:
            return False
        if _stamp(self.slides[index]) > _stamp(record):
            return False
        self.slides[index] = record
        return True

    def apply_remote_create(self, record: SlideRecord) -> bool:
        if self.index_of(record.id) is not None or record.id in self._deleted_ids:
            return False
        self.slides.append(record)
        self._created_since_fetch.add(record.id)
        if self.open_slide_id is None:
            self.open_slide_id = record.id
        return True

    def apply_remote_delete(self, slide_id: str) -> bool:
        self._deleted_ids.add(slide_id)
        index = self.index_of(slide_id)
        if index is None:
            return False
        del self.slides[index]
        if slide_id == self.open_slide_id:
            self._clear_edit()
            if self.slides:
                self.open_slide_id = self.slides[min(index, len(self.slides) - 1)].id
            else:
                self.open_slide_id = None
        return True

    def apply_member_added(self, member: MemberRecord) -> None:
        if all(existing.user_id != member.user_id for existing in self.members):
            self.members.append(member)

    def apply_presence(self, payload: dict[str, Any]) -> None:
        self.roster = list(payload.get("sessions") or [])

    # Local editing
    def begin_edit(self, slide_id: str | None = None) -> SlideRecord:
        """Open a slide for modification and enter Editing."""
        if slide_id is not None and slide_id != self.open_slide_id:
            self.select_slide(slide_id)
        if self.draft is None:
            self.draft = self._copy_open_slide()
        self.editing = True
        return self.draft

    def change_field(self, field: str, value: Any) -> None:
        """Change one field of the draft and mark the state dirty."""
        name = EDITABLE_FIELDS.get(field)
        if name is None:
            raise ValueError(f"Unknown slide field: {field}")
        if self.draft is None:
            self.draft = self._copy_open_slide()
        # Validates the value the same way the server will
        checked = SlidePatch.model_validate({name: value})
        self.draft = self.draft.model_copy(update={name: getattr(checked, name)})
        self.changed_fields.add(name)
        self.revision += 1
        self._field_revisions[name] = self.revision
        self.dirty = True

    def pending_patch(self) -> dict[str, Any]:
        """Wire-form merge patch holding only the fields changed locally."""
        if self.draft is None or not self.changed_fields:
            return {}
        patch = SlidePatch.model_validate(
            {name: getattr(self.draft, name) for name in self.changed_fields}
        )
        return patch.model_dump(mode="json", by_alias=True, exclude_unset=True)

    def accept_saved(self, record: SlideRecord, revision: int | None = None) -> None:
        """
        Take the server's canonical record after a save.

        Args:
            record: Canonical slide returned for the save
            revision: Value of ``revision`` when the saved patch was taken

        The state returns to Viewing only when the saved slide is still open
        and nothing changed locally since ``revision``. Fields changed after
        it are rebased onto the canonical record and the state stays dirty.
        Another slide opened meanwhile keeps its draft.
        """
        index = self.index_of(record.id)
        if index is None:
            self.slides.append(record)
        else:
            self.slides[index] = record

        if self.open_slide_id != record.id:
            return
        if revision is None or self.draft is None:
            self._clear_edit()
            return
        newer = {name for name, seen in self._field_revisions.items() if seen > revision}
        if not newer:
            self._clear_edit()
            return
        self.draft = record.model_copy(
            update={name: getattr(self.draft, name) for name in newer}
        )
        self.changed_fields = set(newer)
        self._field_revisions = {name: self._field_revisions[name] for name in newer}
        self.dirty = True

    def cancel_edit(self) -> None:
        """Discard the draft and return to Viewing. Nothing is re-fetched."""
        self._clear_edit()

    def select_slide(self, slide_id: str) -> None:
        """Open another slide. Any draft of the previous one is dropped."""
        if self.find(slide_id) is None:
            raise KeyError(slide_id)
        self._clear_edit()
        self.open_slide_id = slide_id

    def ensure_deletable(self) -> None:
        if len(self.slides) <= 1:
            raise LastSlideError("A presentation must keep at least one slide")

    def _copy_open_slide(self) -> SlideRecord:
        slide = self.find(self.open_slide_id)
        if slide is None:
            raise LookupError("No slide is open")
        return slide.model_copy(deep=True)

    def _clear_edit(self) -> None:
        self.draft = None
        self.changed_fields = set()
        self._field_revisions = {}
        self.editing = False
        self.dirty = False


def _stamp(slide: SlideRecord) -> datetime:
    """``updated_at`` as an aware UTC datetime, so server stamps always compare."""
    if slide.updated_at.tzinfo is None:
        return slide.updated_at.replace(tzinfo=timezone.utc)
    return slide.updated_at


def _as_project(document: ProjectRecord | dict[str, Any]) -> ProjectRecord:
    if isinstance(document, ProjectRecord):
        return document
    return ProjectRecord.model_validate(document)
