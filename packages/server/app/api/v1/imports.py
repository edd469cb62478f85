"""
Schedule import endpoints.

- JSON rows, CSV/Excel uploads and P6 (XER/XML) uploads share one pipeline
- Imports are best-effort: bad rows and links are skipped and reported
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_project_role
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import ValidationError
from app.models.user import User
from app.services.p6_import import import_p6
from app.services.schedule_import import read_schedule_file, run_import
from prereq_shared.schemas.common import ProjectRole
from prereq_shared.schemas.imports import ImportOptions, ImportResult, ImportScheduleRequest

router = APIRouter()
settings = get_settings()


def _check_row_count(count: int) -> None:
    if count > settings.max_import_rows:
        raise ValidationError(
            f"Schedule has {count} rows; the limit is {settings.max_import_rows}"
        )


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(
            f"Upload is {len(content)} bytes; the limit is {settings.max_upload_bytes}"
        )
    return content


@router.post("/{project_id}/import-schedule", response_model=ImportResult)
async def import_schedule(
    project_id: uuid.UUID,
    body: ImportScheduleRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Import outline-ordered JSON rows."""
    project = await require_project_role(session, user.id, project_id, ProjectRole.PM)
    _check_row_count(len(body.tasks))
    result = await run_import(session, project, body.tasks, body.options)
    await session.commit()
    return result


@router.post("/{project_id}/import-schedule/file", response_model=ImportResult)
async def import_schedule_file(
    project_id: uuid.UUID,
    file: UploadFile = File(...),
    replace_existing: bool = Form(False),
    generate_wbs_codes: bool = Form(False),
    import_dependencies: bool = Form(True),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Import a CSV or Excel schedule with the standard column headers."""
    project = await require_project_role(session, user.id, project_id, ProjectRole.PM)
    content = await _read_upload(file)
    records = read_schedule_file(content, file.filename or "")
    _check_row_count(len(records))

    options = ImportOptions(
        replace_existing=replace_existing,
        generate_wbs_codes=generate_wbs_codes,
        import_dependencies=import_dependencies,
    )
    result = await run_import(session, project, records, options)
    await session.commit()
    return result


@router.post("/{project_id}/import-p6", response_model=ImportResult)
async def import_p6_file(
    project_id: uuid.UUID,
    file: UploadFile = File(...),
    replace_existing: bool = Form(False),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Import a Primavera P6 .xer or .xml export."""
    project = await require_project_role(session, user.id, project_id, ProjectRole.PM)
    content = await _read_upload(file)
    result = await import_p6(
        session, project, content, file.filename or "", replace_existing=replace_existing
    )
    await session.commit()
    return result
