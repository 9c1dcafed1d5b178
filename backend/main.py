import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from motor.motor_asyncio import AsyncIOMotorDatabase

import console
from crud import (
    CLASSES,
    RESOURCES,
    EntityKind,
    collect_stats,
    create_entity,
    delete_entity,
    list_entities,
    update_entity,
)
from database import close_db, count_documents, get_db
from errors import EduHubError, StoreUnavailable, ValidationError
from settings import DATABASE_NAME, UPLOAD_DIR, UPLOAD_URL_PREFIX
from uploads import get_upload_dir, save_upload

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # the client itself is opened lazily by get_db()
    yield
    close_db()


app = FastAPI(title="Kalpavruksha EduHub Admin API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

# StaticFiles needs the directory to exist; files are added by later uploads
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=UPLOAD_DIR), name="uploads")
app.include_router(console.router)


@app.exception_handler(EduHubError)
async def eduhub_error_handler(request: Request, exc: EduHubError):
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("Malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s (%s)", request.url.path, exc, type(exc).__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(exc)})


def preflight():
    return JSONResponse(content={}, headers=CORS_HEADERS)


# ----------------------
# Shared handlers
# ----------------------

async def _list(db: AsyncIOMotorDatabase, kind: EntityKind):
    try:
        return await list_entities(db, kind)
    except StoreUnavailable as e:
        raise StoreUnavailable(f"Failed to fetch {kind.collection}") from e


async def _create(db: AsyncIOMotorDatabase, kind: EntityKind, data: Dict[str, Any]):
    logger.info("Create %s request: name=%r university=%r", kind.label.lower(), data.get("name"), data.get("university"))
    try:
        created = await create_entity(db, kind, data)
    except StoreUnavailable as e:
        raise StoreUnavailable(f"Failed to create {kind.label.lower()}", details=e.details) from e
    return JSONResponse(status_code=201, content=created)


async def _update(db: AsyncIOMotorDatabase, kind: EntityKind, doc_id: Optional[str], data: Dict[str, Any]):
    try:
        return await update_entity(db, kind, doc_id, data)
    except StoreUnavailable as e:
        raise StoreUnavailable(f"Failed to update {kind.label.lower()}", details=e.details) from e


async def _delete(db: AsyncIOMotorDatabase, kind: EntityKind, doc_id: Optional[str]):
    try:
        await delete_entity(db, kind, doc_id)
    except StoreUnavailable as e:
        raise StoreUnavailable(f"Failed to delete {kind.label.lower()}", details=e.details) from e
    return {"success": True}


# ----------------------
# Resources
# ----------------------

@app.options("/api/resources")
def resources_preflight():
    return preflight()


@app.get("/api/resources")
async def list_resources(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await _list(db, RESOURCES)


@app.post("/api/resources")
async def create_resource(data: Dict[str, Any] = Body(...), db: AsyncIOMotorDatabase = Depends(get_db)):
    return await _create(db, RESOURCES, data)


@app.put("/api/resources")
async def update_resource(
    id: Optional[str] = Query(None),
    data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await _update(db, RESOURCES, id, data)


@app.delete("/api/resources")
async def delete_resource(id: Optional[str] = Query(None), db: AsyncIOMotorDatabase = Depends(get_db)):
    return await _delete(db, RESOURCES, id)


# ----------------------
# Classes
# ----------------------

@app.options("/api/classes")
def classes_preflight():
    return preflight()


@app.get("/api/classes")
async def list_classes(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await _list(db, CLASSES)


@app.post("/api/classes")
async def create_class(data: Dict[str, Any] = Body(...), db: AsyncIOMotorDatabase = Depends(get_db)):
    return await _create(db, CLASSES, data)


@app.put("/api/classes")
async def update_class(
    id: Optional[str] = Query(None),
    data: Dict[str, Any] = Body(...),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await _update(db, CLASSES, id, data)


@app.delete("/api/classes")
async def delete_class(id: Optional[str] = Query(None), db: AsyncIOMotorDatabase = Depends(get_db)):
    return await _delete(db, CLASSES, id)


# ----------------------
# Upload
# ----------------------

@app.options("/api/upload")
def upload_preflight():
    return preflight()


@app.post("/api/upload")
async def upload_file(file: Optional[UploadFile] = File(None), upload_dir: Path = Depends(get_upload_dir)):
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")
    stored = await save_upload(await file.read(), file.filename, upload_dir, UPLOAD_URL_PREFIX)
    return {
        "url": stored.url,
        "filename": stored.filename,
        "size": stored.size,
        "message": "File uploaded successfully",
    }


# ----------------------
# Stats, meta & health
# ----------------------

@app.get("/api/stats")
async def stats(db: AsyncIOMotorDatabase = Depends(get_db)):
    try:
        return await collect_stats(db)
    except StoreUnavailable as e:
        raise StoreUnavailable("Failed to fetch statistics") from e


@app.get("/")
def read_root():
    return {"message": "Kalpavruksha EduHub Admin API running"}


@app.get("/test")
async def test_database(db: AsyncIOMotorDatabase = Depends(get_db)):
    response = {
        "backend": "running",
        "database": "mongodb",
        "database_name": DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": [],
        "resources": None,
    }
    try:
        response["collections"] = await db.list_collection_names()
        response["resources"] = await count_documents(db, RESOURCES.collection)
        response["connection_status"] = "Connected"
    except Exception as e:
        logger.error("Database connection test failed: %s", e)
        response["connection_status"] = f"error: {str(e)[:80]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
