from sqlalchemy import Column, String, Text, Integer, Boolean, ForeignKey, Uuid

from doccollab.db.base import BaseModel


class Document(BaseModel):
    __tablename__ = "documents"

    title = Column(String(255), nullable=False)
    content_text = Column(Text, nullable=True)
    status = Column(String(20), default="draft", nullable=False)
    word_count = Column(Integer, default=0, nullable=False)
    is_public = Column(Boolean, default=False, nullable=False)
    public_slug = Column(String(64), unique=True, nullable=True)
    owner_id = Column(Uuid, ForeignKey("profiles.id"), index=True, nullable=False)
