# app/services/cars.py
"""
Car repository.

Every operation returns an ActionResult; the route layer maps failure codes to
HTTP statuses. Identity is checked by the route dependencies before any of
these run.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NoValidImages, StorageDeleteFailure, StorageWriteFailure
from app.models.car import Car, CarStatus
from app.schemas.car import CarCreate, CarRead
from app.schemas.common import ActionResult
from app.services.images import discard_images, ingest_images
from app.services.revalidation import ADMIN_CARS_PATH, Revalidator
from app.services.storage import ImageStorage, storage_paths

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"
DATABASE_ERROR = "DATABASE_ERROR"


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _read(car: Car) -> CarRead:
    return CarRead.model_validate(car)


# =========================================================
# CREATE
# =========================================================
def create_car(
    db: Session,
    car_data: CarCreate,
    images: List[Any],
    storage: ImageStorage,
    revalidator: Revalidator,
    *,
    folder_root: str = "cars",
    upload_concurrency: int = 1,
) -> ActionResult:
    """
    Upload the images, then insert the car with their URLs.

    A car is never written without at least one stored image. If the insert
    fails, the images uploaded for it are removed again.
    """
    car_id = uuid.uuid4()
    folder = f"{folder_root}/{car_id}"

    try:
        image_urls = ingest_images(images, folder, storage, max_workers=upload_concurrency)
    except (NoValidImages, StorageWriteFailure) as e:
        return ActionResult.fail(e.message, e.code)

    payload: Dict[str, Any] = car_data.model_dump()
    payload["fuel_type"] = car_data.fuel_type.value
    car = Car(id=car_id, images=image_urls, **payload)

    try:
        db.add(car)
        db.commit()
        db.refresh(car)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to create car %s", car_id)
        discard_images(storage, storage_paths(storage, image_urls))
        return ActionResult.fail(f"Error adding car: {type(e).__name__}", DATABASE_ERROR)

    revalidator.revalidate_path(ADMIN_CARS_PATH)
    return ActionResult.ok(_read(car))


# =========================================================
# LIST
# =========================================================
def list_cars(db: Session, search: Optional[str] = None) -> ActionResult:
    """All cars, newest first; `search` matches make / model / color (case-insensitive)."""
    stmt = select(Car)

    term = (search or "").strip()
    if term:
        pattern = f"%{_escape_like(term)}%"
        stmt = stmt.where(
            or_(
                Car.make.ilike(pattern, escape="\\"),
                Car.model.ilike(pattern, escape="\\"),
                Car.color.ilike(pattern, escape="\\"),
            )
        )

    stmt = stmt.order_by(desc(Car.created_at))

    try:
        cars = db.execute(stmt).scalars().all()
    except SQLAlchemyError as e:
        logger.exception("Error fetching cars")
        return ActionResult.fail(f"Error fetching cars: {type(e).__name__}", DATABASE_ERROR)

    return ActionResult.ok([_read(c) for c in cars])


def get_featured_cars(db: Session, limit: int = 3) -> ActionResult:
    stmt = (
        select(Car)
        .where(Car.featured.is_(True), Car.status == CarStatus.AVAILABLE)
        .order_by(desc(Car.created_at))
        .limit(max(1, limit))
    )

    try:
        cars = db.execute(stmt).scalars().all()
    except SQLAlchemyError as e:
        logger.exception("Error fetching featured cars")
        return ActionResult.fail(f"Error fetching featured cars: {type(e).__name__}", DATABASE_ERROR)

    return ActionResult.ok([_read(c) for c in cars])


# =========================================================
# DELETE
# =========================================================
def delete_car(
    db: Session,
    car_id: uuid.UUID,
    storage: ImageStorage,
    revalidator: Revalidator,
) -> ActionResult:
    """
    Delete the row, then try to delete its images.

    The row is the source of truth: storage failures are logged and the call
    still succeeds.
    """
    car: Optional[Car] = db.get(Car, car_id)
    if car is None:
        return ActionResult.fail("Car not found", NOT_FOUND)

    image_urls = list(car.images or [])

    try:
        db.delete(car)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Error deleting car %s", car_id)
        return ActionResult.fail(f"Error deleting car: {type(e).__name__}", DATABASE_ERROR)

    paths = storage_paths(storage, image_urls)
    if paths:
        try:
            storage.remove(paths)
        except StorageDeleteFailure:
            # the car is already gone; orphaned objects are accepted
            logger.exception("Error deleting images for car %s", car_id)

    revalidator.revalidate_path(ADMIN_CARS_PATH)
    return ActionResult.ok()


# =========================================================
# UPDATE (status / featured)
# =========================================================
def update_car_status(
    db: Session,
    car_id: uuid.UUID,
    revalidator: Revalidator,
    *,
    status: Optional[CarStatus] = None,
    featured: Optional[bool] = None,
) -> ActionResult:
    """Apply only the fields that were given; None means "leave as is"."""
    car: Optional[Car] = db.get(Car, car_id)
    if car is None:
        return ActionResult.fail("Car not found", NOT_FOUND)

    if status is not None:
        car.status = status
    if featured is not None:
        car.featured = featured

    try:
        db.commit()
        db.refresh(car)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Error updating car status %s", car_id)
        return ActionResult.fail(f"Error updating car status: {type(e).__name__}", DATABASE_ERROR)

    revalidator.revalidate_path(ADMIN_CARS_PATH)
    return ActionResult.ok(_read(car))
