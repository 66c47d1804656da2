"""
Shared pydantic bases for API payloads.
"""
from datetime import datetime
from typing import Any, Iterable, List, Type, TypeVar

from pydantic import BaseModel, ConfigDict

S = TypeVar("S", bound="BaseSchema")


class BaseSchema(BaseModel):
    """Reads from ORM rows; accepts field names as well as aliases."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    @classmethod
    def from_orm_model(cls: Type[S], row: Any) -> S:
        return cls.model_validate(row)

    @classmethod
    def from_orm_list(cls: Type[S], rows: Iterable[Any]) -> List[S]:
        return [cls.model_validate(row) for row in rows]


class TimestampedSchema(BaseSchema):
    created_at: datetime
    updated_at: datetime
