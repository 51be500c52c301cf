"""HTTP routes for slides. Writes are broadcast to the project room."""

from fastapi import APIRouter, Depends, Header, Response
from sqlalchemy.orm import Session

from database import get_db
from services.auth import get_current_user_id
from services.collaboration.app import get_hub
from services.collaboration.errors import CollaborationError, to_http_exception
from services.collaboration.hub import CollaborationHub
from services.slides.service import SlideService
from shared.enums import ServerEvent
from shared.models import BulkImportRequest, SlideCreate, SlidePatch, SlideRecord, event_message

router = APIRouter(prefix="/slides", tags=["Slides"])


def get_slide_service(db: Session = Depends(get_db)) -> SlideService:
    return SlideService(db)


@router.post("", response_model=SlideRecord, status_code=201)
async def create_slide(
    request: SlideCreate,
    x_session_id: str | None = Header(None),
    user_id: str = Depends(get_current_user_id),
    service: SlideService = Depends(get_slide_service),
    hub: CollaborationHub = Depends(get_hub),
):
    """Create a slide at the end of the project and announce it."""
    try:
        record = SlideRecord.model_validate(service.create_slide(request, user_id))
    except CollaborationError as e:
        raise to_http_exception(e) from e
    await hub.router.exclude_self(
        record.project_id, x_session_id, event_message(ServerEvent.SLIDE_CREATED, record.to_wire())
    )
    return record


@router.get("/project/{project_id}", response_model=list[SlideRecord])
async def list_slides(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    service: SlideService = Depends(get_slide_service),
):
    try:
        return [SlideRecord.model_validate(s) for s in service.list_slides(project_id, user_id)]
    except CollaborationError as e:
        raise to_http_exception(e) from e


@router.post("/project/{project_id}/bulk", response_model=list[SlideRecord], status_code=201)
async def import_slides(
    project_id: str,
    request: BulkImportRequest,
    x_session_id: str | None = Header(None),
    user_id: str = Depends(get_current_user_id),
    service: SlideService = Depends(get_slide_service),
    hub: CollaborationHub = Depends(get_hub),
):
    """Import a generated or exported deck in one transaction."""
    try:
        slides = service.create_many(project_id, request.slides, user_id)
    except CollaborationError as e:
        raise to_http_exception(e) from e
    records = [SlideRecord.model_validate(s) for s in slides]
    for record in records:
        await hub.router.exclude_self(
            project_id, x_session_id, event_message(ServerEvent.SLIDE_CREATED, record.to_wire())
        )
    return records


@router.get("/{slide_id}", response_model=SlideRecord)
async def get_slide(
    slide_id: str,
    user_id: str = Depends(get_current_user_id),
    service: SlideService = Depends(get_slide_service),
):
    try:
        return SlideRecord.model_validate(service.get_slide(slide_id, user_id))
    except CollaborationError as e:
        raise to_http_exception(e) from e


@router.patch("/{slide_id}", response_model=SlideRecord)
async def update_slide(
    slide_id: str,
    patch: SlidePatch,
    x_session_id: str | None = Header(None),
    user_id: str = Depends(get_current_user_id),
    hub: CollaborationHub = Depends(get_hub),
):
    """Merge-patch a slide; omitted fields keep their values."""
    try:
        record = await hub.coordinator.apply_edit(slide_id, patch, acting_user_id=user_id)
    except CollaborationError as e:
        raise to_http_exception(e) from e
    await hub.router.exclude_self(
        record.project_id,
        x_session_id,
        event_message(ServerEvent.SLIDE_UPDATED, {**record.to_wire(), "updatedBy": x_session_id}),
    )
    return record


@router.delete("/{slide_id}", status_code=204)
async def delete_slide(
    slide_id: str,
    x_session_id: str | None = Header(None),
    user_id: str = Depends(get_current_user_id),
    hub: CollaborationHub = Depends(get_hub),
):
    try:
        deletion = await hub.coordinator.delete_slide(slide_id, acting_user_id=user_id)
    except CollaborationError as e:
        raise to_http_exception(e) from e
    await hub.router.exclude_self(
        deletion.project_id,
        x_session_id,
        event_message(ServerEvent.SLIDE_DELETED, {"slideId": slide_id, "deletedBy": user_id}),
    )
    return Response(status_code=204)
