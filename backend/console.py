"""
Server-rendered admin console.

Pages read the full entity list from the store on every request. Mutations
go through the same crud operations as the JSON API and then redirect back
to the list, so the table is always re-queried after a change.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from motor.motor_asyncio import AsyncIOMotorDatabase
from starlette.datastructures import UploadFile

from crud import CLASSES, RESOURCES, EntityKind, collect_stats, create_entity, delete_entity, list_entities, update_entity
from database import get_db
from errors import EduHubError
from schemas import (
    BRANCHES,
    CLASS_STATUSES,
    COLLEGES,
    RESOURCE_TYPES,
    SCHEMES,
    SEMESTERS,
    UNIVERSITIES,
)
from settings import STUDENT_PORTAL_URL, TEMPLATES_DIR, UPLOAD_URL_PREFIX
from uploads import get_upload_dir, save_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["console"])

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals.update(
    universities=UNIVERSITIES,
    schemes=SCHEMES,
    colleges=COLLEGES,
    branches=BRANCHES,
    semester_options={s: f"{s} Semester" for s in SEMESTERS},
    resource_types=RESOURCE_TYPES,
    class_statuses=CLASS_STATUSES,
    student_portal_url=STUDENT_PORTAL_URL,
)

FILTER_ALL = "all"
RESOURCE_FILTERS = ("university", "branch", "semester", "type")

RESOURCE_FORM_FIELDS = (
    "name", "subjectCode", "header", "university", "scheme",
    "college", "branch", "semester", "type", "fileUrl",
)
CLASS_FORM_FIELDS = ("name", "status", "schedule", "time", "university", "college", "branch", "semester")


def filter_entities(items: Iterable[Dict[str, Any]], filters: Mapping[str, Optional[str]]) -> List[Dict[str, Any]]:
    """AND-combine the given field filters; empty or "all" leaves a field unfiltered."""
    active = {k: v for k, v in filters.items() if v and v != FILTER_ALL}
    return [item for item in items if all(item.get(k) == v for k, v in active.items())]


def _selected_filters(request: Request) -> Dict[str, str]:
    return {f: request.query_params.get(f) or FILTER_ALL for f in RESOURCE_FILTERS}


def _filter_query(filters: Mapping[str, str]) -> str:
    return urlencode({k: v for k, v in filters.items() if v != FILTER_ALL})


def _empty_form(fields: Iterable[str], **defaults) -> Dict[str, str]:
    form = {f: "" for f in fields}
    form.update(defaults)
    return form


def _form_from_doc(fields: Iterable[str], doc: Dict[str, Any]) -> Dict[str, str]:
    return {f: doc.get(f) or "" for f in fields}


def _redirect(path: str, query: str = "", error: Optional[str] = None) -> RedirectResponse:
    params = query
    if error:
        params = "&".join(p for p in (query, urlencode({"error": error})) if p)
    return RedirectResponse(f"{path}?{params}" if params else path, status_code=303)


async def _load(db: AsyncIOMotorDatabase, kind: EntityKind):
    try:
        return await list_entities(db, kind), None
    except EduHubError as e:
        logger.error("Failed to fetch %s: %s", kind.collection, e.message)
        return [], f"Failed to fetch {kind.collection}"


# ----------------------
# Dashboard
# ----------------------

@router.get("")
async def dashboard(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    error = None
    stats = {"resources": 0, "classes": 0, "byType": {}, "recent": []}
    try:
        stats = await collect_stats(db)
    except EduHubError as e:
        logger.error("Failed to load dashboard statistics: %s", e.message)
        error = "Failed to load statistics"
    return templates.TemplateResponse(request, "dashboard.html", {"stats": stats, "error": error})


# ----------------------
# Resources
# ----------------------

async def _render_resources(
    request: Request,
    db: AsyncIOMotorDatabase,
    form: Optional[Dict[str, str]] = None,
    edit_id: Optional[str] = None,
    error: Optional[str] = None,
    status_code: int = 200,
):
    resources, load_error = await _load(db, RESOURCES)
    filters = _selected_filters(request)

    if form is None:
        form = _empty_form(RESOURCE_FORM_FIELDS, type="notes")
        if edit_id:
            target = next((r for r in resources if r["id"] == edit_id), None)
            if target is None:
                error = error or "Resource not found"
                edit_id = None
            else:
                form = _form_from_doc(RESOURCE_FORM_FIELDS, target)

    return templates.TemplateResponse(
        request,
        "resources.html",
        {
            "resources": filter_entities(resources, filters),
            "total": len(resources),
            "filters": filters,
            "filter_query": _filter_query(filters),
            "form": form,
            "edit_id": edit_id,
            "error": error or load_error or request.query_params.get("error"),
        },
        status_code=status_code,
    )


@router.get("/resources")
async def resources_page(request: Request, edit: Optional[str] = None, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await _render_resources(request, db, edit_id=edit)


@router.post("/resources")
async def submit_resource(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    upload_dir: Path = Depends(get_upload_dir),
):
    submitted = await request.form()
    data = {f: str(submitted.get(f) or "") for f in RESOURCE_FORM_FIELDS}
    edit_id = submitted.get("editId") or None

    try:
        upload = submitted.get("file")
        if submitted.get("uploadMode") == "file" and isinstance(upload, UploadFile) and upload.filename:
            stored = await save_upload(await upload.read(), upload.filename, upload_dir, UPLOAD_URL_PREFIX)
            data["fileUrl"] = stored.url
        if edit_id:
            await update_entity(db, RESOURCES, edit_id, data)
        else:
            await create_entity(db, RESOURCES, data)
    except EduHubError as e:
        logger.warning("Failed to save resource: %s", e.message)
        return await _render_resources(request, db, form=data, edit_id=edit_id, error=e.message, status_code=e.status_code)

    return _redirect("/admin/resources", _filter_query(_selected_filters(request)))


@router.post("/resources/{resource_id}/delete")
async def remove_resource(request: Request, resource_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    query = _filter_query(_selected_filters(request))
    try:
        await delete_entity(db, RESOURCES, resource_id)
    except EduHubError as e:
        logger.warning("Failed to delete resource %s: %s", resource_id, e.message)
        return _redirect("/admin/resources", query, error=e.message)
    return _redirect("/admin/resources", query)


# ----------------------
# Classes
# ----------------------

async def _render_classes(
    request: Request,
    db: AsyncIOMotorDatabase,
    form: Optional[Dict[str, str]] = None,
    edit_id: Optional[str] = None,
    error: Optional[str] = None,
    status_code: int = 200,
):
    classes, load_error = await _load(db, CLASSES)

    if form is None:
        form = _empty_form(CLASS_FORM_FIELDS, status="ongoing")
        if edit_id:
            target = next((c for c in classes if c["id"] == edit_id), None)
            if target is None:
                error = error or "Class not found"
                edit_id = None
            else:
                form = _form_from_doc(CLASS_FORM_FIELDS, target)

    return templates.TemplateResponse(
        request,
        "classes.html",
        {
            "classes": classes,
            "form": form,
            "edit_id": edit_id,
            "error": error or load_error or request.query_params.get("error"),
        },
        status_code=status_code,
    )


@router.get("/classes")
async def classes_page(request: Request, edit: Optional[str] = None, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await _render_classes(request, db, edit_id=edit)


@router.post("/classes")
async def submit_class(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    submitted = await request.form()
    data = {f: str(submitted.get(f) or "") for f in CLASS_FORM_FIELDS}
    edit_id = submitted.get("editId") or None

    try:
        if edit_id:
            await update_entity(db, CLASSES, edit_id, data)
        else:
            await create_entity(db, CLASSES, data)
    except EduHubError as e:
        logger.warning("Failed to save class: %s", e.message)
        return await _render_classes(request, db, form=data, edit_id=edit_id, error=e.message, status_code=e.status_code)

    return _redirect("/admin/classes")


@router.post("/classes/{class_id}/delete")
async def remove_class(class_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        await delete_entity(db, CLASSES, class_id)
    except EduHubError as e:
        logger.warning("Failed to delete class %s: %s", class_id, e.message)
        return _redirect("/admin/classes", error=e.message)
    return _redirect("/admin/classes")
