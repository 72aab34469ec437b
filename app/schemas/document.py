"""Document Schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.schemas.profile import ProfileBrief


class DocumentResponse(BaseModel):
    id: UUID
    title: str
    original_filename: str
    mime_type: str
    file_size: int
    description: str | None
    category: str
    assigned_to: UUID | None
    is_general: bool
    assignee: ProfileBrief | None = None
    uploader: ProfileBrief | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
