"""Tenant (channel account) schema."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from reelpipe.jobs.models import utcnow

SECRET_FIELDS = (
    "google_client_id",
    "google_client_secret",
    "refresh_token",
    "cloudinary_cloud_name",
    "cloudinary_api_key",
    "cloudinary_api_secret",
)


class TenantStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Branding(BaseModel):
    """Presentation metadata passed through to renderers and metadata templates."""

    model_config = ConfigDict(extra="allow")

    theme: str = ""
    audience: str = ""
    tone: str = ""
    channel_name: str = ""
    hashtags: list[str] = Field(default_factory=list)


class Tenant(BaseModel):
    id: str
    name: str = ""
    status: TenantStatus = TenantStatus.ACTIVE
    personas: list[str] = Field(default_factory=list)
    branding: Branding = Field(default_factory=Branding)
    # secret field name -> Fernet token; never holds plaintext
    encrypted: dict[str, str] = Field(default_factory=dict, repr=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE


class TenantCredentials(BaseModel):
    """Decrypted secrets for one tenant. Held in memory only."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    google_client_id: str | None = Field(default=None, repr=False)
    google_client_secret: str | None = Field(default=None, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    cloudinary_cloud_name: str | None = None
    cloudinary_api_key: str | None = Field(default=None, repr=False)
    cloudinary_api_secret: str | None = Field(default=None, repr=False)

    @property
    def has_platform(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret and self.refresh_token)

    @property
    def has_storage(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)
