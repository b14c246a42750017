"""Pydantic models for the MANA claim entry point."""

from pydantic import BaseModel, ConfigDict, Field


class ClaimRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    user_id: int = Field(gt=0)
    code: str = Field(min_length=1, max_length=64)
    user_display_name: str | None = Field(default=None, max_length=255)
    idempotency_key: str | None = Field(default=None, max_length=128)
