"""Request bodies for the Ledgerly API."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class CalculateHealthRequest(BaseModel):
    mode: Literal["single_user", "all_users"] = "single_user"
    user_id: Optional[str] = None


class ValidateCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)


class CreateCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    discount_percent: float
    valid_until: Optional[str] = None
    max_uses: Optional[int] = None

    @field_validator("max_uses")
    @classmethod
    def validate_max_uses(cls, v):
        if v is not None and v < 1:
            raise ValueError("max_uses must be positive")
        return v


class ModePinRequest(BaseModel):
    action: Literal["create", "validate", "update"]
    pin: str
    new_pin: Optional[str] = None


class ResetPinRequest(BaseModel):
    token: str = Field(min_length=1)
    new_pin: str


class AddAdminRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254)
