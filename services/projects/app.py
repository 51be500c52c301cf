"""HTTP routes for projects and invitations."""

from fastapi import APIRouter, Depends, Header, Response
from sqlalchemy.orm import Session

from database import get_db
from services.auth import get_current_user_id
from services.collaboration.app import get_hub
from services.collaboration.errors import CollaborationError, to_http_exception
from services.collaboration.hub import CollaborationHub
from services.projects.service import ProjectService, to_record
from shared.enums import ServerEvent
from shared.models import (
    InviteRequest,
    MemberRecord,
    ProjectCreate,
    ProjectRecord,
    ProjectUpdate,
    event_message,
)
from shared.utils import setup_logging

logger = setup_logging("project-routes")

router = APIRouter(prefix="/projects", tags=["Projects"])


def get_project_service(db: Session = Depends(get_db)) -> ProjectService:
    return ProjectService(db)


@router.post("", response_model=ProjectRecord, status_code=201)
async def create_project(
    request: ProjectCreate,
    user_id: str = Depends(get_current_user_id),
    service: ProjectService = Depends(get_project_service),
):
    """Create a project owned by the caller."""
    try:
        return to_record(service.create_project(user_id, request.name))
    except CollaborationError as e:
        raise to_http_exception(e) from e


@router.get("", response_model=list[ProjectRecord])
async def list_projects(
    user_id: str = Depends(get_current_user_id),
    service: ProjectService = Depends(get_project_service),
):
    """List projects the caller is a member of."""
    return [to_record(project, include_slides=False) for project in service.list_projects(user_id)]


@router.get("/{project_id}", response_model=ProjectRecord)
async def get_project(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProjectService = Depends(get_project_service),
):
    """Get a project with its members and slides ordered by creation time."""
    try:
        return to_record(service.get_project(project_id, user_id))
    except CollaborationError as e:
        raise to_http_exception(e) from e


@router.patch("/{project_id}", response_model=ProjectRecord)
async def rename_project(
    project_id: str,
    request: ProjectUpdate,
    user_id: str = Depends(get_current_user_id),
    service: ProjectService = Depends(get_project_service),
):
    try:
        if request.name is None:
            return to_record(service.get_project(project_id, user_id))
        return to_record(service.rename_project(project_id, user_id, request.name))
    except CollaborationError as e:
        raise to_http_exception(e) from e


@router.delete("/{project_id}", status_code=204)
async def delete_project(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProjectService = Depends(get_project_service),
):
    """Delete a project and everything in it. Owner only."""
    try:
        service.delete_project(project_id, user_id)
    except CollaborationError as e:
        raise to_http_exception(e) from e
    return Response(status_code=204)


@router.post(
    "/{project_id}/invite",
    response_model=MemberRecord,
    status_code=201,
)
async def invite_member(
    project_id: str,
    request: InviteRequest,
    x_session_id: str | None = Header(None),
    user_id: str = Depends(get_current_user_id),
    service: ProjectService = Depends(get_project_service),
    hub: CollaborationHub = Depends(get_hub),
):
    """Invite a user as editor or viewer and announce the new member to the room."""
    try:
        member = service.invite_member(project_id, user_id, request.user_id, request.role)
    except CollaborationError as e:
        raise to_http_exception(e) from e

    record = MemberRecord.model_validate(member)
    await hub.router.exclude_self(
        project_id, x_session_id, event_message(ServerEvent.MEMBER_ADDED, record.to_wire())
    )
    return record
