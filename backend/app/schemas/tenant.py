from datetime import datetime
import re

from pydantic import BaseModel, Field, field_validator

SLUG_PATTERN = re.compile(r"^[a-z0-9-]{3,50}$")


class TenantCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, value: str) -> str:
        slug = value.strip()
        if not SLUG_PATTERN.match(slug):
            raise ValueError("slug must be 3-50 characters of lowercase letters, digits or '-'")
        return slug

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Name cannot be empty")
        return trimmed


class TenantUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    is_active: bool | None = None


class TenantOut(BaseModel):
    id: int
    name: str
    slug: str
    keycloak_realm_id: str
    keycloak_url: str
    keycloak_client_id: str
    is_active: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
