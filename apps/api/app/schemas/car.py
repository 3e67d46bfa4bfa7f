# app/schemas/car.py

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.models.car import CarStatus, FuelType


class _CamelModel(BaseModel):
    # the admin UI speaks camelCase (bodyType, fuelType); snake_case is accepted too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CarBase(_CamelModel):
    make: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    year: int = Field(ge=1900, le=2100)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    mileage: int = Field(ge=0)
    color: str = Field(min_length=1, max_length=50)
    fuel_type: FuelType
    transmission: str = Field(min_length=1, max_length=30)
    body_type: str = Field(min_length=1, max_length=50)
    seats: Optional[int] = Field(default=None, ge=1, le=100)
    description: str = ""

    status: CarStatus = CarStatus.AVAILABLE
    featured: bool = False


class CarCreate(CarBase):
    pass


class CarCreateRequest(_CamelModel):
    car_data: CarCreate
    # data URIs: "data:image/<ext>;base64,<payload>"; anything else is skipped at ingestion
    images: List[Any] = Field(default_factory=list)


class CarStatusUpdate(_CamelModel):
    """Partial update: only the fields present in the request body are applied."""

    status: Optional[CarStatus] = None
    featured: Optional[bool] = None

    @model_validator(mode="after")
    def _reject_explicit_nulls(self) -> "CarStatusUpdate":
        for key in self.model_fields_set:
            if getattr(self, key) is None:
                raise ValueError(f"{key} cannot be null")
        return self


class CarRead(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    make: str
    model: str
    year: int
    # Decimal in the DB, a plain number on the wire
    price: float
    mileage: int
    color: str
    fuel_type: str
    transmission: str
    body_type: str
    seats: Optional[int] = None
    description: str
    images: List[str]
    status: CarStatus
    featured: bool

    created_at: datetime
    updated_at: datetime
