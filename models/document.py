from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from typing import Literal, Optional

UploadStatus = Literal["idle", "uploading", "success", "error"]


class UploadState(BaseModel):
    status: UploadStatus = "idle"
    message: str = ""
    file_name: Optional[str] = None
    enriched_url: Optional[str] = None
    updated_at: Optional[datetime] = None


class EnrichedDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(alias="Id")
    title: Optional[str] = Field(default=None, alias="Title")
    file_ref: Optional[str] = Field(default=None, alias="FileRef")
    created: Optional[datetime] = Field(default=None, alias="Created")

    @computed_field
    @property
    def display_title(self) -> str:
        return self.title or self.file_ref or ""


class ProcessFileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    site_id: str = Field(alias="siteId")
    drive_id: str = Field(alias="driveId")
    item_id: str = Field(default="temp", alias="itemId")  # resolved by the Function App from file name
    file_name: str = Field(alias="fileName")
    uploader_email: str = Field(default="", alias="uploaderEmail")
    tenant_id: str = Field(default="default", alias="tenantId")


class ProcessFileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enriched_url: str = Field(alias="enrichedUrl")


class EnrichmentLogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(alias="Id")
    title: Optional[str] = Field(default=None, alias="Title")
    status: Optional[str] = Field(default=None, alias="SMEPilot_Status")
    enriched_file_url: Optional[str] = Field(default=None, alias="SMEPilot_EnrichedFileUrl")
    modified: Optional[datetime] = Field(default=None, alias="Modified")

    @field_validator("enriched_file_url", mode="before")
    @classmethod
    def _hyperlink_url(cls, value):
        # Hyperlink columns come back as {"Url": ..., "Description": ...}
        if isinstance(value, dict):
            return value.get("Url")
        return value
