from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class Existing:
    """Reference to a row the caller says already exists"""
    id: int


@dataclass(frozen=True)
class New:
    """The caller wants a new row created"""


RowRef = Union[Existing, New]


def ref_from_id(row_id: Optional[int]) -> RowRef:
    return Existing(row_id) if row_id is not None else New()


class ORMModel(BaseModel):
    """Base for response models read straight off ORM objects"""
    model_config = ConfigDict(from_attributes=True)

