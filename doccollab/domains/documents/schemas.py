from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List, Dict, Any
import uuid
from datetime import datetime

from doccollab.domains.documents.entities import DocumentStatus


class DocumentSummary(BaseModel):
    """Краткое представление документа, которое хранит кэш"""
    id: uuid.UUID
    title: str
    content_text: Optional[str] = None
    status: DocumentStatus = DocumentStatus.DRAFT
    word_count: int = 0
    is_public: bool = False
    public_slug: Optional[str] = None
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentCreate(BaseModel):
    """Схема для создания документа"""
    owner_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=255)
    content_text: Optional[str] = Field(default=None, max_length=1000000)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()


class DocumentUpdate(BaseModel):
    """Схема для частичного обновления документа"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content_text: Optional[str] = Field(None, max_length=1000000)
    status: Optional[DocumentStatus] = None
    is_public: Optional[bool] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip() if v else v

    def changes(self) -> Dict[str, Any]:
        """Только явно переданные поля"""
        return self.model_dump(exclude_unset=True, mode="json")


class DocumentListResponse(BaseModel):
    """Схема для списка документов"""
    documents: List[DocumentSummary]
    total: int
