"""Credential Pydantic model."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Credential(BaseModel):
    """One API key bound to the active provider, plus its runtime state."""

    token: str = Field(min_length=1, repr=False)
    index: int = Field(ge=1)  # 1-based position, used in logs instead of the token
    in_use: bool = False
    cooldown_until: Optional[float] = None

    @field_validator("token")
    @classmethod
    def token_not_whitespace(cls, v: str) -> str:
        """Validate that token is not only whitespace."""
        if not v.strip():
            raise ValueError("token cannot be only whitespace")
        return v.strip()

    def is_cooling(self, now: float) -> bool:
        return self.cooldown_until is not None and self.cooldown_until > now

    def is_eligible(self, now: float) -> bool:
        return not self.in_use and not self.is_cooling(now)
