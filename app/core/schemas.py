from enum import Enum
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Address(BaseModel):
    """Postal address shared by schools and student contact info."""

    street: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=50)
    state: Optional[str] = Field(None, max_length=50)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=50)


class IdName(BaseModel):
    """Denormalized reference to a related record (id + display name)."""

    id: UUID
    name: str


def model_values(payload: BaseModel, json_fields: Iterable[str] = (), exclude_unset: bool = False) -> Dict[str, Any]:
    """Column values from a validated payload.

    Fields stored in JSON columns are dumped in JSON mode (sub-objects replace the
    stored value wholesale); enums are stored by value. For partial updates
    (exclude_unset) explicit nulls are skipped, same as absent fields.
    """
    json_fields = set(json_fields)
    values = payload.model_dump(exclude_unset=exclude_unset)
    json_values = payload.model_dump(mode="json", exclude_unset=exclude_unset, exclude_none=True)
    out: Dict[str, Any] = {}
    for key, value in values.items():
        if exclude_unset and value is None:
            continue
        if key in json_fields:
            out[key] = json_values.get(key)
        elif isinstance(value, Enum):
            out[key] = value.value
        else:
            out[key] = value
    return out
