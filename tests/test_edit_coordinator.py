import asyncio
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from models.database import Slide
from services.collaboration.coordinator import EditCoordinator
from services.collaboration.errors import (
    ForbiddenError,
    PatchValidationError,
    PersistenceError,
    SlideNotFoundError,
)
from shared.enums import SlideType


def load_slide(session_factory, slide_id: str) -> Slide | None:
    with session_factory() as session:
        slide = session.get(Slide, slide_id)
        if slide is not None:
            session.expunge(slide)
        return slide


@pytest.mark.asyncio
async def test_title_edit_round_trip_keeps_other_fields(session_factory, users, project) -> None:
    coordinator = EditCoordinator(session_factory)
    slide_id = project["slide_ids"][1]
    before = load_slide(session_factory, slide_id)

    record = await coordinator.apply_edit(slide_id, {"title": "X"}, acting_user_id=users["bob"])

    after = load_slide(session_factory, slide_id)
    assert record.title == "X"
    assert after.title == "X"
    assert after.content == before.content
    assert after.bullet_points == before.bullet_points
    assert after.slide_type == before.slide_type
    assert after.image_url == before.image_url
    assert after.updated_at > before.updated_at
    # The full record is returned, not the patch
    assert record.content == "Numbers content"
    assert record.project_id == project["id"]


@pytest.mark.asyncio
async def test_camel_case_patch_fields(session_factory, project) -> None:
    coordinator = EditCoordinator(session_factory)
    slide_id = project["slide_ids"][0]

    record = await coordinator.apply_edit(
        slide_id, {"bulletPoints": ["a", "b"], "slideType": "comparison", "imageUrl": None}
    )

    assert record.bullet_points == ["a", "b"]
    assert record.slide_type == SlideType.COMPARISON
    assert record.image_url is None


@pytest.mark.asyncio
async def test_disjoint_concurrent_edits_merge(session_factory, users, project) -> None:
    coordinator = EditCoordinator(session_factory)
    slide_id = project["slide_ids"][0]

    await asyncio.gather(
        coordinator.apply_edit(slide_id, {"content": "foo"}, acting_user_id=users["alice"]),
        coordinator.apply_edit(slide_id, {"title": "bar"}, acting_user_id=users["bob"]),
    )

    after = load_slide(session_factory, slide_id)
    assert after.content == "foo"
    assert after.title == "bar"


@pytest.mark.asyncio
async def test_non_member_is_forbidden_and_slide_unchanged(session_factory, users, project) -> None:
    coordinator = EditCoordinator(session_factory)
    slide_id = project["slide_ids"][0]
    before = load_slide(session_factory, slide_id)

    with pytest.raises(ForbiddenError):
        await coordinator.apply_edit(slide_id, {"title": "hijack"}, acting_user_id=users["dave"])

    after = load_slide(session_factory, slide_id)
    assert after.title == before.title
    assert after.updated_at == before.updated_at


@pytest.mark.asyncio
async def test_viewer_cannot_edit_or_delete(session_factory, users, project) -> None:
    coordinator = EditCoordinator(session_factory)
    slide_id = project["slide_ids"][0]

    with pytest.raises(ForbiddenError):
        await coordinator.apply_edit(slide_id, {"title": "nope"}, acting_user_id=users["carol"])
    with pytest.raises(ForbiddenError):
        await coordinator.delete_slide(slide_id, acting_user_id=users["carol"])
    assert load_slide(session_factory, slide_id) is not None


@pytest.mark.asyncio
async def test_missing_slide_is_not_found(session_factory, users) -> None:
    coordinator = EditCoordinator(session_factory)
    with pytest.raises(SlideNotFoundError):
        await coordinator.apply_edit("missing", {"title": "x"}, acting_user_id=users["alice"])
    with pytest.raises(SlideNotFoundError):
        await coordinator.delete_slide("missing")


@pytest.mark.asyncio
async def test_slide_outside_named_document_is_not_found(session_factory, project) -> None:
    coordinator = EditCoordinator(session_factory)
    with pytest.raises(SlideNotFoundError):
        await coordinator.apply_edit(
            project["slide_ids"][0], {"title": "x"}, document_id="another-project"
        )


@pytest.mark.asyncio
async def test_unknown_and_null_fields_are_rejected(session_factory, project) -> None:
    coordinator = EditCoordinator(session_factory)
    slide_id = project["slide_ids"][0]

    with pytest.raises(PatchValidationError) as unknown:
        await coordinator.apply_edit(slide_id, {"title": "ok", "projectId": "elsewhere"})
    assert unknown.value.errors

    with pytest.raises(PatchValidationError):
        await coordinator.apply_edit(slide_id, {"content": None})
    with pytest.raises(PatchValidationError):
        await coordinator.apply_edit(slide_id, {"slideType": "poster"})
    with pytest.raises(PatchValidationError):
        await coordinator.apply_edit(slide_id, ["title", "x"])

    assert load_slide(session_factory, slide_id).title == "Intro"


@pytest.mark.asyncio
async def test_blank_title_gets_placeholder(session_factory, project) -> None:
    coordinator = EditCoordinator(session_factory)
    record = await coordinator.apply_edit(project["slide_ids"][2], {"title": "   "})
    assert record.title == "Untitled slide"


@pytest.mark.asyncio
async def test_empty_patch_only_touches_timestamp(session_factory, project) -> None:
    coordinator = EditCoordinator(session_factory)
    slide_id = project["slide_ids"][2]
    before = load_slide(session_factory, slide_id)

    record = await coordinator.apply_edit(slide_id, {})

    assert record.title == before.title
    assert load_slide(session_factory, slide_id).updated_at > before.updated_at


@pytest.mark.asyncio
async def test_trusted_caller_skips_membership_check(session_factory, project) -> None:
    coordinator = EditCoordinator(session_factory)
    record = await coordinator.apply_edit(project["slide_ids"][0], {"content": "trusted"})
    assert record.content == "trusted"


@pytest.mark.asyncio
async def test_delete_returns_event_and_allows_last_slide(session_factory, users, project) -> None:
    coordinator = EditCoordinator(session_factory)

    for slide_id in project["slide_ids"]:
        deletion = await coordinator.delete_slide(slide_id, acting_user_id=users["alice"])
        assert deletion.slide_id == slide_id
        assert deletion.project_id == project["id"]
        assert deletion.to_wire()["deletedBy"] == users["alice"]

    for slide_id in project["slide_ids"]:
        assert load_slide(session_factory, slide_id) is None
    with pytest.raises(SlideNotFoundError):
        await coordinator.delete_slide(project["slide_ids"][0])


@pytest.mark.asyncio
async def test_store_failure_surfaces_as_persistence_error(session_factory, project) -> None:
    coordinator = EditCoordinator(session_factory)
    slide_id = project["slide_ids"][0]

    with patch(
        "services.collaboration.coordinator.update",
        side_effect=OperationalError("UPDATE slides", {}, Exception("disk I/O error")),
    ):
        with pytest.raises(PersistenceError):
            await coordinator.apply_edit(slide_id, {"title": "lost"})

    assert load_slide(session_factory, slide_id).title == "Intro"
