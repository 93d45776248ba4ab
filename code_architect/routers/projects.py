# code_architect/routers/projects.py
from typing import Annotated, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Project
from ..permissions import owned_project
from ..schemas import ProjectCreate, ProjectOut, ProjectUpdate
from ..services import create_project, update_project
from ..storage import Storage
from .auth import current_login_user

router = APIRouter(prefix="/api/projects", tags=["projects"])

project_db = Annotated[Session, Depends(get_db)]
owned = Annotated[Project, Depends(owned_project)]


@router.get("", response_model=List[ProjectOut])
def list_projects(db: project_db, current_user: current_login_user):
    return Storage(db).list_projects_by_owner(current_user.id)


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def create(payload: ProjectCreate, db: project_db, current_user: current_login_user):
    return create_project(db, current_user, payload)


@router.get("/{project_id}", response_model=ProjectOut)
def read(project: owned):
    return project


@router.put("/{project_id}", response_model=ProjectOut)
def update(payload: ProjectUpdate, project: owned, db: project_db):
    return update_project(db, project, payload)
