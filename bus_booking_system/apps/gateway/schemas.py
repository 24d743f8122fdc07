"""
Typed response and request schemas for the bus booking backend.

Every payload coming back from the backend is decoded through one of these
models. A payload that does not match its schema raises DecodeError instead
of leaking half-populated data into the views.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Type, TypeVar

from pydantic import (
    BaseModel, ConfigDict, Field, TypeAdapter, ValidationError,
    field_serializer, field_validator,
)
from pydantic.alias_generators import to_camel

from .exceptions import DecodeError

BACKEND_DATE_FORMAT = '%d-%m-%Y'


class SeatType(str, Enum):
    """Seat classification; fixed when the seat is created."""
    REGULAR = "REGULAR"
    ELDER = "ELDER"
    PREGNANT = "PREGNANT"


class SeatStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class BackendModel(BaseModel):
    """Base for backend payloads: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
    )

    def to_payload(self) -> dict:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


def parse_backend_date(value: Any) -> Any:
    """Accept the backend's dd-mm-yyyy dates as well as ISO dates."""
    if isinstance(value, str) and value:
        try:
            return datetime.strptime(value, BACKEND_DATE_FORMAT).date()
        except ValueError:
            return value
    return value


class Bus(BackendModel):
    id: int
    name: str
    route: str
    departure_date: Optional[date] = None
    departure_time: Optional[str] = None
    arrival_time: Optional[str] = None
    total_seats: Optional[int] = Field(None, ge=0)
    available_seats: Optional[int] = Field(None, ge=0)
    price: Decimal

    @field_validator('departure_date', mode='before')
    @classmethod
    def parse_departure_date(cls, value):
        return parse_backend_date(value)


class BusInput(BackendModel):
    """Payload for creating or updating a bus."""
    name: str
    route: str
    departure_date: date
    departure_time: str
    arrival_time: str
    total_seats: int = Field(..., ge=1)
    available_seats: int = Field(..., ge=0)
    price: Decimal = Field(..., ge=0)

    @field_serializer('departure_date')
    def serialize_departure_date(self, value: date) -> str:
        return value.strftime(BACKEND_DATE_FORMAT)

    @field_serializer('price')
    def serialize_price(self, value: Decimal) -> float:
        return float(value)


class Seat(BackendModel):
    id: int
    bus_id: Optional[int] = None
    seat_number: str
    seat_type: SeatType
    status: SeatStatus


class SeatCounts(BaseModel):
    """Number of seats per type; a type missing from the payload counts as zero."""
    model_config = ConfigDict(extra='ignore')

    REGULAR: int = 0
    ELDER: int = 0
    PREGNANT: int = 0

    def for_type(self, seat_type: SeatType) -> int:
        return getattr(self, seat_type.value)

    @property
    def total(self) -> int:
        return self.REGULAR + self.ELDER + self.PREGNANT


class User(BackendModel):
    id: int
    name: str
    email: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserInput(BackendModel):
    name: str
    email: str
    password: str
    role: UserRole = UserRole.USER


class UserPriorityInfo(BackendModel):
    elderly_priority_eligible: bool = False
    pregnant_priority_eligible: bool = False
    recommended_seat_type: Optional[SeatType] = None


class Booking(BackendModel):
    id: int
    user_id: int
    bus_id: int
    booking_date: datetime
    seat_number: str
    amount: Decimal
    status: BookingStatus


class BookingPayload(BackendModel):
    """Body of POST /booking."""
    user_id: int
    bus_id: int
    booking_date: datetime
    seat_number: str
    amount: Decimal
    status: BookingStatus

    @field_serializer('amount')
    def serialize_amount(self, value: Decimal) -> float:
        return float(value)


Model = TypeVar('Model', bound=BaseModel)


def decode(model: Type[Model], payload: Any) -> Model:
    """Validate a decoded JSON payload against a schema, failing closed."""
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(f"{model.__name__}: {e.error_count()} validation error(s)") from e


def decode_list(model: Type[Model], payload: Any) -> List[Model]:
    try:
        return TypeAdapter(List[model]).validate_python(payload)
    except ValidationError as e:
        raise DecodeError(f"List[{model.__name__}]: {e.error_count()} validation error(s)") from e
