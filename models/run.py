from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, field_validator


class RunRequest(BaseModel):
    hour: Optional[int] = None
    attach_frequency: Optional[bool] = None

    @field_validator("hour")
    @classmethod
    def validate_hour(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return value
        if not 0 <= value <= 23:
            raise ValueError("hour must be between 0 and 23")
        return value
