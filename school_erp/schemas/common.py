from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, PlainSerializer, field_validator

# Decimal columns leave the API as JSON numbers
Numeric = Annotated[Decimal, PlainSerializer(float, return_type=float)]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class SchoolScoped(BaseModel):
    """Request body carrying an optional tenant code; the session's school is used when absent"""
    school_code: Optional[str] = None

    @field_validator("school_code")
    @classmethod
    def normalize_school_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v and v.strip() else None


class RowError(BaseModel):
    row: int
    errors: List[str]
