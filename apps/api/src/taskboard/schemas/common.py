from __future__ import annotations

from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    # JSON is camelCase; snake_case input is accepted too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DataOut(ApiModel, Generic[T]):
    data: T


class DocumentsOut(ApiModel, Generic[T]):
    documents: List[T]
    total: int


class DeletedOut(ApiModel):
    id: str
