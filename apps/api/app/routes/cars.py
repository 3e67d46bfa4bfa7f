# apps/api/app/routes/cars.py
from __future__ import annotations

from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import UploadTooLarge
from app.db.session import get_db
from app.dependencies.auth import get_current_user
from app.dependencies.providers import get_revalidator, get_storage, get_vision_model
from app.models.user import User
from app.schemas.car import CarCreateRequest, CarStatusUpdate
from app.schemas.common import ActionResult
from app.services import cars as car_service
from app.services.extraction import ExtractionMode, VisionModel, detect_image_mime, extract_car_details
from app.services.revalidation import Revalidator
from app.services.storage import ImageStorage


router = APIRouter(prefix="/cars", tags=["cars"])


# failure code -> HTTP status (success is 200 unless the route says otherwise)
FAILURE_STATUS: Dict[str, int] = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NO_VALID_IMAGES": status.HTTP_400_BAD_REQUEST,
    "PARSE_FAILURE": 422,
    "MALFORMED_RESPONSE": 422,
    "STORAGE_WRITE_FAILED": status.HTTP_502_BAD_GATEWAY,
    "DATABASE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_response(result: ActionResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    if result.success:
        code = success_status
    else:
        code = FAILURE_STATUS.get(result.code or "", status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content=result.model_dump(mode="json", by_alias=True))


async def read_upload(file: UploadFile) -> bytes:
    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise UploadTooLarge(f"File too large (max {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB)")
    return content


# =========================================================
# AI: photo -> listing draft
# =========================================================
@router.post("/extract")
async def extract_listing_from_photo(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    model: VisionModel = Depends(get_vision_model),
):
    """
    Draft listing fields from a single car photo.

    Unparseable model output is a 422 with success=false (the UI asks for
    another photo); provider/config problems are 5xx.
    """
    content = await read_upload(file)
    mime_type = detect_image_mime(content, file.content_type)

    result = await run_in_threadpool(
        extract_car_details, content, mime_type, ExtractionMode.LISTING, model
    )
    return to_response(result)


# =========================================================
# PUBLIC: featured cars (home page)
# =========================================================
@router.get("/featured")
def featured_cars(
    limit: int = Query(default=3, ge=1, le=50),
    db: Session = Depends(get_db),
):
    return to_response(car_service.get_featured_cars(db, limit=limit))


# =========================================================
# CRUD
# =========================================================
@router.get("")
def list_cars(
    search: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return to_response(car_service.list_cars(db, search))


@router.post("")
def create_car(
    body: CarCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
    revalidator: Revalidator = Depends(get_revalidator),
):
    result = car_service.create_car(
        db,
        body.car_data,
        body.images,
        storage,
        revalidator,
        folder_root=settings.CAR_IMAGE_FOLDER,
        upload_concurrency=settings.IMAGE_UPLOAD_CONCURRENCY,
    )
    return to_response(result, success_status=status.HTTP_201_CREATED)


@router.delete("/{car_id}")
def delete_car(
    car_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: ImageStorage = Depends(get_storage),
    revalidator: Revalidator = Depends(get_revalidator),
):
    return to_response(car_service.delete_car(db, car_id, storage, revalidator))


@router.patch("/{car_id}/status")
def update_car_status(
    car_id: UUID,
    data: CarStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    revalidator: Revalidator = Depends(get_revalidator),
):
    updates = data.model_dump(exclude_unset=True)
    result = car_service.update_car_status(
        db,
        car_id,
        revalidator,
        status=updates.get("status"),
        featured=updates.get("featured"),
    )
    return to_response(result)
