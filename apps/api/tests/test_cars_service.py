import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app.models.car import Car, CarStatus
from app.schemas.car import CarCreate
from app.services import cars as car_service
from app.services.revalidation import ADMIN_CARS_PATH

from conftest import BUCKET, SUPABASE_URL, FakeStorage, RecordingRevalidator

PUBLIC = f"{SUPABASE_URL}/storage/v1/object/public/{BUCKET}"
T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _car_data(**overrides) -> CarCreate:
    data = {
        "make": "Toyota",
        "model": "Corolla",
        "year": 2019,
        "price": "15000.50",
        "mileage": 42000,
        "color": "White",
        "fuelType": "Petrol",
        "transmission": "Automatic",
        "bodyType": "Sedan",
        "seats": 5,
        "description": "Clean compact sedan.",
    }
    data.update(overrides)
    return CarCreate.model_validate(data)


def _insert(db, *, make="Honda", model="Civic", color="Blue", minutes=0, **extra) -> Car:
    car_id = extra.pop("id", uuid.uuid4())
    car = Car(
        id=car_id,
        make=make,
        model=model,
        year=2020,
        price=Decimal("20000"),
        mileage=10000,
        color=color,
        fuel_type="Petrol",
        transmission="Manual",
        body_type="Hatchback",
        description="",
        images=extra.pop("images", [f"{PUBLIC}/cars/{car_id}/image-1-0.png"]),
        created_at=T0 + timedelta(minutes=minutes),
        **extra,
    )
    db.add(car)
    db.commit()
    return car


# =========================================================
# create
# =========================================================
def test_create_car_uploads_then_inserts(db_session, storage, revalidator):
    images = ["data:image/png;base64,AAAA", "nope", "data:image/jpeg;base64,BBBB"]

    result = car_service.create_car(db_session, _car_data(), images, storage, revalidator)

    assert result.success is True
    created = result.data
    stored = db_session.get(Car, created.id)
    assert stored is not None
    assert len(stored.images) == 2
    assert all(url.startswith(f"{PUBLIC}/cars/{created.id}/") for url in stored.images)
    assert stored.price == Decimal("15000.50")
    assert stored.fuel_type == "Petrol"
    assert stored.status == CarStatus.AVAILABLE
    assert stored.featured is False
    assert revalidator.paths == [ADMIN_CARS_PATH]


def test_create_car_without_valid_images_is_a_failure(db_session, storage, revalidator):
    result = car_service.create_car(db_session, _car_data(), ["garbage"], storage, revalidator)

    assert result.success is False
    assert result.code == "NO_VALID_IMAGES"
    assert db_session.query(Car).count() == 0
    assert storage.call_count == 0
    assert revalidator.paths == []


def test_create_car_storage_failure_is_a_failure(db_session, revalidator):
    storage = FakeStorage(fail_upload_at=0)

    result = car_service.create_car(db_session, _car_data(), ["data:image/png;base64,AAAA"], storage, revalidator)

    assert result.success is False
    assert result.code == "STORAGE_WRITE_FAILED"
    assert db_session.query(Car).count() == 0


def test_create_car_db_failure_removes_uploaded_images(db_session, storage, revalidator, monkeypatch):
    def _boom():
        raise OperationalError("INSERT INTO cars", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", _boom)

    result = car_service.create_car(db_session, _car_data(), ["data:image/png;base64,AAAA"], storage, revalidator)

    assert result.success is False
    assert result.code == "DATABASE_ERROR"
    assert len(storage.remove_calls) == 1
    assert storage.objects == {}
    assert revalidator.paths == []


# =========================================================
# list
# =========================================================
def test_list_cars_newest_first(db_session):
    old = _insert(db_session, minutes=0)
    new = _insert(db_session, minutes=10)
    mid = _insert(db_session, minutes=5)

    result = car_service.list_cars(db_session)

    assert result.success is True
    assert [c.id for c in result.data] == [new.id, mid.id, old.id]


@pytest.mark.parametrize(
    "term, expected",
    [
        ("toy", {"Toyota"}),
        ("CIVIC", {"Honda"}),
        ("red", {"Toyota", "Honda"}),
        ("  ", {"Toyota", "Honda", "Tesla"}),
        ("100%", set()),
    ],
)
def test_list_cars_search_matches_make_model_color(db_session, term, expected):
    _insert(db_session, make="Toyota", model="Yaris", color="Dark Red")
    _insert(db_session, make="Honda", model="Civic", color="Red")
    _insert(db_session, make="Tesla", model="Model 3", color="White")

    result = car_service.list_cars(db_session, term)

    assert {c.make for c in result.data} == expected


# =========================================================
# delete
# =========================================================
def test_delete_missing_car_touches_no_storage(db_session, storage, revalidator):
    result = car_service.delete_car(db_session, uuid.uuid4(), storage, revalidator)

    assert result.success is False
    assert result.code == "NOT_FOUND"
    assert result.error == "Car not found"
    assert storage.call_count == 0
    assert revalidator.paths == []


def test_delete_car_removes_row_and_images(db_session, storage, revalidator):
    car_id = uuid.uuid4()
    car = _insert(
        db_session,
        id=car_id,
        images=[
            f"{PUBLIC}/cars/{car_id}/image-1-0.png",
            f"{PUBLIC}/cars/{car_id}/image-1-1.jpeg",
            "https://elsewhere.example.com/pic.png",
        ],
    )

    result = car_service.delete_car(db_session, car.id, storage, revalidator)

    assert result.success is True
    assert db_session.get(Car, car_id) is None
    assert storage.remove_calls == [[f"cars/{car_id}/image-1-0.png", f"cars/{car_id}/image-1-1.jpeg"]]
    assert revalidator.paths == [ADMIN_CARS_PATH]


def test_delete_car_succeeds_when_storage_delete_fails(db_session, revalidator):
    storage = FakeStorage(fail_remove=True)
    car = _insert(db_session)

    result = car_service.delete_car(db_session, car.id, storage, revalidator)

    assert result.success is True
    assert db_session.get(Car, car.id) is None
    assert len(storage.remove_calls) == 1


# =========================================================
# update status
# =========================================================
def test_featured_update_leaves_status(db_session, revalidator):
    car = _insert(db_session, status=CarStatus.UNAVAILABLE, featured=False)

    result = car_service.update_car_status(db_session, car.id, revalidator, featured=True)

    assert result.success is True
    db_session.expire_all()
    stored = db_session.get(Car, car.id)
    assert stored.featured is True
    assert stored.status == CarStatus.UNAVAILABLE
    assert revalidator.paths == [ADMIN_CARS_PATH]


def test_status_update_leaves_featured(db_session, revalidator):
    car = _insert(db_session, status=CarStatus.AVAILABLE, featured=True)

    result = car_service.update_car_status(db_session, car.id, revalidator, status=CarStatus.SOLD)

    assert result.success is True
    db_session.expire_all()
    stored = db_session.get(Car, car.id)
    assert stored.status == CarStatus.SOLD
    assert stored.featured is True


def test_update_missing_car_is_not_found(db_session, revalidator):
    result = car_service.update_car_status(db_session, uuid.uuid4(), revalidator, status=CarStatus.SOLD)

    assert result.success is False
    assert result.code == "NOT_FOUND"
    assert revalidator.paths == []


# =========================================================
# featured
# =========================================================
def test_featured_cars_only_available_newest_first(db_session):
    a = _insert(db_session, featured=True, minutes=1)
    _insert(db_session, featured=True, status=CarStatus.SOLD, minutes=2)
    _insert(db_session, featured=False, minutes=3)
    b = _insert(db_session, featured=True, minutes=4)
    c = _insert(db_session, featured=True, minutes=5)
    _insert(db_session, featured=True, minutes=0)

    result = car_service.get_featured_cars(db_session, limit=3)

    assert [car.id for car in result.data] == [c.id, b.id, a.id]
