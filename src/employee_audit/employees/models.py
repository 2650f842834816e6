"""Employee records and request bodies."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from employee_audit.utils.time import from_storage_timestamp

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SORT_FIELDS: dict[str, str] = {
    "employeeId": "employee_id",
    "employeeNumber": "employee_number",
    "name": "name",
}


@dataclass(frozen=True)
class Employee:
    employee_id: int
    employee_number: str
    name: str
    furigana: str | None
    birthday: date | None
    email: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Employee":
        birthday = row.get("birthday")
        return cls(
            employee_id=int(row["employee_id"]),
            employee_number=row["employee_number"],
            name=row["name"],
            furigana=row.get("furigana"),
            birthday=date.fromisoformat(birthday) if birthday else None,
            email=row.get("email"),
            created_at=from_storage_timestamp(row["created_at"]),
            updated_at=from_storage_timestamp(row["updated_at"]),
        )

    def snapshot(self) -> dict[str, Any]:
        """Fields recorded as audit old/new values."""
        return {
            "employeeNumber": self.employee_number,
            "name": self.name,
            "furigana": self.furigana,
            "birthday": self.birthday.isoformat() if self.birthday else None,
            "email": self.email,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "employeeId": self.employee_id,
            **self.snapshot(),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class EmployeeInput(BaseModel):
    """Body for create and full update."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    employee_number: str = Field(
        alias="employeeNumber", min_length=1, max_length=20, pattern=r"^[A-Za-z0-9_-]+$"
    )
    name: str = Field(min_length=1, max_length=100)
    furigana: str | None = Field(default=None, max_length=200)
    birthday: date | None = None
    email: str | None = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name cannot be empty")
        return value

    @field_validator("birthday")
    @classmethod
    def _validate_birthday(cls, value: date | None) -> date | None:
        if value is not None and value >= date.today():
            raise ValueError("Birthday must be a past date")
        return value

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        if not _EMAIL_RE.match(value):
            raise ValueError("Email format is invalid")
        return value


class PageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    page: int = Field(default=0, ge=0)
    size: int = Field(default=10, ge=1, le=100)
    sort_by: str = Field(default="employeeId", alias="sortBy")
    sort_direction: Literal["ASC", "DESC"] = Field(default="ASC", alias="sortDirection")

    @field_validator("sort_by")
    @classmethod
    def _validate_sort_by(cls, value: str) -> str:
        if value not in SORT_FIELDS:
            raise ValueError(f"sortBy must be one of {', '.join(SORT_FIELDS)}")
        return value

    @field_validator("sort_direction", mode="before")
    @classmethod
    def _upper_direction(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @property
    def offset(self) -> int:
        return self.page * self.size

    @property
    def order_clause(self) -> str:
        return f"ORDER BY {SORT_FIELDS[self.sort_by]} {self.sort_direction}"


@dataclass(frozen=True)
class Page:
    content: list[Employee]
    page: int
    size: int
    total_elements: int
    sort_by: str
    sort_direction: str

    @property
    def total_pages(self) -> int:
        return (self.total_elements + self.size - 1) // self.size if self.size else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": [employee.to_dict() for employee in self.content],
            "page": self.page,
            "size": self.size,
            "totalElements": self.total_elements,
            "totalPages": self.total_pages,
            "first": self.page == 0,
            "last": self.page >= max(self.total_pages - 1, 0),
            "numberOfElements": len(self.content),
            "sortBy": self.sort_by,
            "sortDirection": self.sort_direction,
        }
