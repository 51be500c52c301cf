"""Project (shared document) management and membership invitations."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from models.database import Project, ProjectMember, User
from services.collaboration.errors import (
    ConflictError,
    ForbiddenError,
    PersistenceError,
    ProjectNotFoundError,
    UserNotFoundError,
)
from shared.enums import MemberRole
from shared.models import ProjectRecord
from shared.utils import setup_logging

logger = setup_logging("project-service")


def require_member(db: Session, project_id: str, user_id: str) -> ProjectMember:
    """
    Return the caller's membership in a project.

    Raises:
        ProjectNotFoundError: If the project does not exist
        ForbiddenError: If the user is not a member
    """
    if db.get(Project, project_id) is None:
        raise ProjectNotFoundError(f"Project {project_id} not found")
    member = (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
        .first()
    )
    if member is None:
        raise ForbiddenError("You are not a member of this project")
    return member


def to_record(project: Project, include_slides: bool = True) -> ProjectRecord:
    record = ProjectRecord.model_validate(project)
    record.download_url = project.export_url
    if not include_slides:
        record.slides = []
    return record


class ProjectService:
    """CRUD over projects. The owner membership is created with the project."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_project(self, owner_id: str, name: str) -> Project:
        project = Project(name=name.strip(), user_id=owner_id)
        project.members.append(ProjectMember(user_id=owner_id, role=MemberRole.OWNER))
        self.db.add(project)
        self._commit("create project")
        self.db.refresh(project)
        logger.info(f"Project {project.id} created by {owner_id}")
        return project

    def list_projects(self, user_id: str) -> list[Project]:
        """Projects where the user holds any membership, newest first."""
        return (
            self.db.query(Project)
            .join(ProjectMember, ProjectMember.project_id == Project.id)
            .filter(ProjectMember.user_id == user_id)
            .options(selectinload(Project.members))
            .order_by(Project.created_at.desc())
            .all()
        )

    def get_project(self, project_id: str, user_id: str) -> Project:
        require_member(self.db, project_id, user_id)
        return (
            self.db.query(Project)
            .options(selectinload(Project.members), selectinload(Project.slides))
            .filter(Project.id == project_id)
            .one()
        )

    def rename_project(self, project_id: str, user_id: str, name: str) -> Project:
        member = require_member(self.db, project_id, user_id)
        if not member.role.can_edit:
            raise ForbiddenError("Viewers cannot rename the project")
        project = self.db.get(Project, project_id)
        project.name = name.strip()
        self._commit("rename project")
        self.db.refresh(project)
        return project

    def delete_project(self, project_id: str, user_id: str) -> None:
        """Delete a project with its slides and members. Owner only."""
        member = require_member(self.db, project_id, user_id)
        if member.role != MemberRole.OWNER:
            raise ForbiddenError("Only the owner can delete the project")
        self.db.delete(self.db.get(Project, project_id))
        self._commit("delete project")
        logger.info(f"Project {project_id} deleted by {user_id}")

    def invite_member(
        self, project_id: str, owner_id: str, user_id: str, role: MemberRole
    ) -> ProjectMember:
        """
        Add a member to a project. Only the owner may invite.

        Raises:
            ForbiddenError: If the inviter is not the owner or the role is owner
            UserNotFoundError: If the invited user does not exist
            ConflictError: If the user is already a member
        """
        inviter = require_member(self.db, project_id, owner_id)
        if inviter.role != MemberRole.OWNER:
            raise ForbiddenError("Only the owner can invite members")
        if role == MemberRole.OWNER:
            raise ForbiddenError("The owner role cannot be assigned")
        if self.db.get(User, user_id) is None:
            raise UserNotFoundError(f"User {user_id} not found")

        existing = (
            self.db.query(ProjectMember)
            .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
            .first()
        )
        if existing is not None:
            raise ConflictError("User is already a member of this project")

        member = ProjectMember(project_id=project_id, user_id=user_id, role=role)
        self.db.add(member)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("User is already a member of this project") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to invite {user_id} to {project_id}: {e}")
            raise PersistenceError("Failed to add member") from e
        self.db.refresh(member)
        logger.info(f"User {user_id} invited to {project_id} as {role.value}")
        return member

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise PersistenceError(f"Failed to {action}") from e
