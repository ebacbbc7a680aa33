# sites/models.py

import time
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_ms() -> int:
    return int(time.time() * 1000)


class Category(str, Enum):
    RESTAURANT = "restaurant"
    RETAIL = "retail"
    SERVICE = "service"
    OTHER = "other"


class DeploymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    LIVE = "live"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.LIVE, DeploymentStatus.ERROR)


class _Model(BaseModel):
    # Field names are snake_case in code, camelCase on the wire and in storage
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_doc(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ProductItem(_Model):
    name: str = Field(..., min_length=1)
    price: float = Field(default=0, ge=0)
    description: str = Field(default="")


class ProductCategory(_Model):
    category_name: str = Field(..., alias="categoryName", min_length=1)
    items: List[ProductItem] = Field(..., min_length=1)


class BusinessRecord(_Model):
    id: str
    business_name: str = Field(..., alias="businessName")
    owner_name: Optional[str] = Field(default=None, alias="ownerName")
    description: Optional[str] = Field(default=None)
    category: Category
    products: List[ProductCategory] = Field(..., min_length=1)
    phone: str
    email: Optional[str] = Field(default=None)
    address: str
    whatsapp: Optional[str] = Field(default=None)
    instagram: Optional[str] = Field(default=None)
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")
    theme: Optional[str] = Field(default=None)
    custom_prompt: Optional[str] = Field(default=None, alias="customPrompt")
    created_at: int = Field(default_factory=now_ms, alias="createdAt")

    @property
    def contact_whatsapp(self) -> str:
        return self.whatsapp or self.phone


class Theme(_Model):
    primary: str
    secondary: str
    accent: str
    background: str
    text: str
    success: str


class SiteArtifact(_Model):
    html: str
    version: int = Field(default=1, ge=1)
    generated_at: int = Field(default_factory=now_ms, alias="generatedAt")
    business_data: BusinessRecord = Field(..., alias="businessData")
    generator: str = Field(default="template")
    last_request: Optional[str] = Field(default=None, alias="lastRequest")

    def revise(self, html: str, generator: str, request: Optional[str] = None) -> "SiteArtifact":
        return self.model_copy(update={
            "html": html,
            "version": self.version + 1,
            "generated_at": now_ms(),
            "generator": generator,
            "last_request": request,
        })


class DeploymentRecord(_Model):
    business_id: str = Field(..., alias="businessId")
    subdomain: str
    status: DeploymentStatus = DeploymentStatus.PENDING
    domain: Optional[str] = None
    url: Optional[str] = None
    deployed_at: Optional[int] = Field(default=None, alias="deployedAt")
    error: Optional[str] = None
    error_at: Optional[int] = Field(default=None, alias="errorAt")
    deployment_method: Optional[str] = Field(default=None, alias="deploymentMethod")
    processing_started_at: Optional[int] = Field(default=None, alias="processingStartedAt")
    created_at: int = Field(default_factory=now_ms, alias="createdAt")

    @field_validator("subdomain")
    def check_subdomain_not_empty(cls, v):
        if not v.strip():
            raise ValueError("subdomain must not be empty")
        return v

    def processing_time(self, now: Optional[int] = None) -> Optional[int]:
        if self.processing_started_at is None:
            return None
        end = self.deployed_at or self.error_at or (now if now is not None else now_ms())
        return max(0, end - self.processing_started_at)


class DeploymentOutcome(_Model):
    """What a successful strategy hands back to the orchestrator."""
    method: str
    domain: str
    url: str
    deployed_at: int = Field(default_factory=now_ms, alias="deployedAt")
    attempted: List[str] = Field(default_factory=list)


class ProviderResult(_Model):
    success: bool
    html: str = ""
    css: Optional[str] = None
    js: Optional[str] = None
