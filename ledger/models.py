from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Account(CamelModel):
    id: int
    name: str
    credits: int = Field(..., ge=0)
    referral_code: str
    referral_count: int = 0


class AccountResponse(CamelModel):
    """Public view of an account; the internal id never leaves the backend."""

    name: str
    credits: int
    referral_code: str
    referral_count: int

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "alice",
            "credits": 50,
            "referralCode": "ALICE123",
            "referralCount": 0
        }
    })


class LoginRequest(CamelModel):
    name: str = Field(..., description="Display name, acts as the identity key")
    referral_code: Optional[str] = Field(default=None, description="Code of the referring account")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Name is required")
        return value


class CreditsRequest(CamelModel):
    name: str
    amount: int = Field(..., gt=0, strict=True)

    model_config = ConfigDict(json_schema_extra={
        "example": {"name": "alice", "amount": 10}
    })

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Name is required")
        return value


class ErrorResponse(BaseModel):
    message: str
    provider_status: Optional[int] = Field(default=None, serialization_alias="providerStatus")
