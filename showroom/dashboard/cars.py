"""
Inventory management: add, edit, delete and bulk-update cars.

Every successful write is audited and followed by a dashboard reload so the
table, the analytics mirror and the stats stay in step with storage.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as SchemaError

from showroom.audit import AuditAction, log_admin_activity
from showroom.backend.base import BaseBackend
from showroom.config import Settings
from showroom.core import (
    AppError,
    BackendAuthError,
    NotFoundError,
    OperationInProgressError,
    ValidationError,
    get_logger,
)
from showroom.core.time import Clock, system_clock, to_iso
from showroom.notifications import Notifier

logger = get_logger(__name__)

CAR_STATUSES = ("available", "sold")
MIN_YEAR = 1990

REQUIRED_MESSAGE = "Please fill in all required fields."
FIELD_MESSAGES = {
    "year": "Please enter a valid year.",
    "price": "Please enter a valid price.",
    "mileage": "Please enter a valid mileage.",
    "seats": "Please enter a valid number of seats (2-9).",
    "status": "Invalid status. Please enter available or sold.",
    "images": "Please upload at least one car image.",
}
REQUIRED_FIELDS = ("make", "model", "year", "price", "mileage", "seats")


class CarForm(BaseModel):
    """Validated contents of the add/edit car form."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    make: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    year: int
    price: float = Field(..., gt=0)
    mileage: int = Field(..., ge=0)
    seats: int = Field(..., ge=2, le=9)
    status: str = Field(default="available", pattern=r"^(available|sold)$")
    category: str = ""
    fuel_type: str = ""
    transmission: str = ""
    description: str = ""
    features: list[str] = Field(default_factory=list)
    images: list[str] = Field(..., min_length=1)

    @field_validator("price", mode="before")
    @classmethod
    def strip_thousands_separators(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.replace(",", "").strip()
        return v

    @field_validator("features", mode="before")
    @classmethod
    def split_features(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [f.strip() for f in v.split(",") if f.strip()]
        return v

    @field_validator("year")
    @classmethod
    def validate_year(cls, v: int, info: ValidationInfo) -> int:
        max_year = (info.context or {}).get("max_year", datetime.now().year)
        if v < MIN_YEAR or v > max_year:
            raise ValueError(f"year must be between {MIN_YEAR} and {max_year}")
        return v

    def to_row(self, updated_at: str) -> dict[str, Any]:
        """Row shape stored in the cars table."""
        return {
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "price": self.price,
            "status": self.status,
            "images": list(self.images),
            "meta": {
                "category": self.category,
                "fuelType": self.fuel_type,
                "transmission": self.transmission,
                "mileage": self.mileage,
                "seats": self.seats,
                "features": list(self.features),
                "description": self.description,
            },
            "updated_at": updated_at,
        }


def parse_car_form(data: dict[str, Any], now: float) -> CarForm:
    """
    Validate raw form input.

    Raises:
        ValidationError: With the first user-facing problem as the message and
            the offending field in ``details``. Missing required fields win
            over range errors.
    """
    max_year = datetime.fromtimestamp(now).year
    try:
        return CarForm.model_validate(data, context={"max_year": max_year})
    except SchemaError as exc:
        problems = [(str(err["loc"][0]), err["type"]) for err in exc.errors() if err["loc"]]
        for field, kind in problems:
            if field in REQUIRED_FIELDS and kind in ("missing", "string_too_short"):
                raise ValidationError(REQUIRED_MESSAGE, details={"field": field}) from exc
        field = problems[0][0] if problems else ""
        message = FIELD_MESSAGES.get(field, REQUIRED_MESSAGE)
        raise ValidationError(message, details={"field": field}) from exc


def save_error_message(exc: AppError) -> str:
    body = str((exc.details or {}).get("body", ""))
    if "22003" in body:
        return "Price is too large to store. Please enter a smaller value."
    if isinstance(exc, BackendAuthError):
        return "Permission denied: this account cannot modify cars."
    if (exc.details or {}).get("status") == 409 or "23505" in body:
        return "A car with these details already exists."
    return "Error saving car. Please try again."


class CarManager:
    """Car writes made from the admin dashboard."""

    def __init__(
        self,
        backend: BaseBackend,
        settings: Settings,
        *,
        notifier: Notifier,
        cars: Callable[[], list[dict[str, Any]]],
        admin_id: Callable[[], Optional[str]],
        on_change: Optional[Callable[[], Awaitable[Any]]] = None,
        clock: Clock = system_clock,
    ):
        self.backend = backend
        self.settings = settings
        self.notifier = notifier
        self._cars = cars
        self._admin_id = admin_id
        self._on_change = on_change
        self._clock = clock
        self._saving = False

    @property
    def saving(self) -> bool:
        return self._saving

    def find(self, car_id: Any) -> Optional[dict[str, Any]]:
        return next((c for c in self._cars() if str(c.get("id")) == str(car_id)), None)

    async def save(self, data: dict[str, Any], car_id: Any = None) -> Optional[dict[str, Any]]:
        """
        Add a car, or update ``car_id`` when given.

        Returns the stored row, or None when the backend rejected the write
        (the admin has already been notified).

        Raises:
            OperationInProgressError: A save is still pending.
            ValidationError: The form is incomplete or out of range.
            NotFoundError: ``car_id`` is not in the loaded inventory.
        """
        if self._saving:
            raise OperationInProgressError("Save already in progress")

        now = self._clock()
        try:
            form = parse_car_form(data, now)
        except ValidationError as err:
            level = "warning" if err.message in (REQUIRED_MESSAGE, FIELD_MESSAGES["images"]) else "error"
            self.notifier.notify(err.message, level)
            raise

        existing = None
        if car_id is not None:
            found = self.find(car_id)
            if found is None:
                self.notifier.notify("Car not found.", "error")
                raise NotFoundError("Car not found.")
            existing = dict(found)

        row = form.to_row(to_iso(now))
        self._saving = True
        try:
            if existing is not None:
                updated = await self.backend.update(
                    self.settings.cars_table, row, filters=[("id", "eq", existing["id"])]
                )
                saved = updated[0] if updated else {**existing, **row}
                await self._audit(
                    AuditAction.CAR_UPDATED,
                    {
                        "car_id": existing["id"],
                        "make": form.make,
                        "model": form.model,
                        "changes": {"old": existing, "new": row},
                    },
                )
                message = f"{existing.get('make')} {existing.get('model')} updated successfully!"
            else:
                row["created_at"] = to_iso(now)
                row["is_deleted"] = False
                saved = await self.backend.insert(self.settings.cars_table, row)
                await self._audit(
                    AuditAction.CAR_ADDED,
                    {
                        "make": form.make,
                        "model": form.model,
                        "year": form.year,
                        "price": form.price,
                        "timestamp": to_iso(now),
                    },
                )
                message = f"{form.make} {form.model} added successfully!"
        except AppError as exc:
            logger.error("Error saving car", data={"code": exc.code.value, "car_id": car_id})
            self.notifier.notify(save_error_message(exc), "error")
            return None
        finally:
            self._saving = False

        self.notifier.notify(message, "success")
        await self._reload()
        return saved

    async def delete(self, car_id: Any) -> bool:
        """Permanently delete one car."""
        car = self.find(car_id)
        if car is None:
            self.notifier.notify("Car not found.", "error")
            return False
        try:
            await self.backend.delete(self.settings.cars_table, filters=[("id", "eq", car["id"])])
        except AppError as exc:
            logger.error("Error deleting car", data={"code": exc.code.value, "car_id": car_id})
            self.notifier.notify("Error deleting car. Please try again.", "error")
            return False

        await self._audit(
            AuditAction.CAR_DELETED,
            {"car_id": car["id"], "make": car.get("make"), "model": car.get("model")},
        )
        self.notifier.notify("Car deleted successfully!", "success")
        await self._reload()
        return True

    async def bulk_delete(self, car_ids: Sequence[Any]) -> int:
        """Delete each selected car; returns how many were deleted."""
        if not car_ids:
            return 0
        done: list[Any] = []
        try:
            for car_id in car_ids:
                await self.backend.delete(self.settings.cars_table, filters=[("id", "eq", car_id)])
                done.append(car_id)
        except AppError as exc:
            logger.error("Error deleting cars", data={"code": exc.code.value, "deleted": len(done)})
            self.notifier.notify("Error deleting cars. Please try again.", "error")
        else:
            self.notifier.notify(f"{len(done)} car(s) deleted successfully!", "success")

        if done:
            await self._audit(AuditAction.CARS_BULK_DELETED, {"car_ids": done, "count": len(done)})
            await self._reload()
        return len(done)

    async def bulk_change_status(self, car_ids: Sequence[Any], status: str) -> int:
        """Set ``status`` on each selected car; returns how many were updated."""
        if not car_ids:
            return 0
        status = (status or "").strip().lower()
        if status not in CAR_STATUSES:
            self.notifier.notify(FIELD_MESSAGES["status"], "warning")
            raise ValidationError(FIELD_MESSAGES["status"], details={"field": "status"})

        done: list[Any] = []
        try:
            for car_id in car_ids:
                await self.backend.update(
                    self.settings.cars_table, {"status": status}, filters=[("id", "eq", car_id)]
                )
                done.append(car_id)
        except AppError as exc:
            logger.error("Error updating car status", data={"code": exc.code.value, "updated": len(done)})
            self.notifier.notify("Error updating status. Please try again.", "error")
        else:
            self.notifier.notify(f"{len(done)} car(s) status updated to {status}!", "success")

        if done:
            await self._audit(
                AuditAction.CARS_STATUS_CHANGED, {"car_ids": done, "status": status, "count": len(done)}
            )
            await self._reload()
        return len(done)

    async def _audit(self, action: str, details: dict[str, Any]) -> None:
        await log_admin_activity(
            self.backend,
            action,
            self._admin_id(),
            details,
            table=self.settings.admin_logs_table,
            clock=self._clock,
        )

    async def _reload(self) -> None:
        if self._on_change is not None:
            await self._on_change()
