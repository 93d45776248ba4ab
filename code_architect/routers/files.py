# code_architect/routers/files.py
from typing import Annotated, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFound
from ..models import GeneratedFile, Project
from ..permissions import owned_file, owned_project
from ..schemas import DownloadEntry, DownloadManifest, GeneratedFileOut
from ..storage import Storage

router = APIRouter(prefix="/api", tags=["files"])

files_db = Annotated[Session, Depends(get_db)]


@router.get("/projects/{project_id}/files", response_model=List[GeneratedFileOut])
def list_project_files(project: Annotated[Project, Depends(owned_project)], db: files_db):
    return Storage(db).list_generated_files_by_project(project.id)


@router.get("/files/{file_id}", response_model=GeneratedFileOut)
def read_file(generated: Annotated[GeneratedFile, Depends(owned_file)]):
    return generated


@router.get("/projects/{project_id}/download", response_model=DownloadManifest)
def download_project(project: Annotated[Project, Depends(owned_project)], db: files_db):
    files = Storage(db).list_generated_files_by_project(project.id)
    if not files:
        raise NotFound("No files found for this project")

    return DownloadManifest(
        message="Project download ready",
        files=[DownloadEntry(filename=f.filename, filepath=f.filepath, size=len(f.content)) for f in files],
    )
