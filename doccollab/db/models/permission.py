from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Uuid

from doccollab.db.base import BaseModel, utcnow


class DocumentPermission(BaseModel):
    __tablename__ = "document_permissions"

    document_id = Column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("profiles.id"), nullable=False)
    role = Column(String(20), nullable=False)
    granted_by = Column(Uuid, ForeignKey("profiles.id"), nullable=False)
    granted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by = Column(Uuid, ForeignKey("profiles.id"), nullable=True)

    # Не более одного активного разрешения на пару (документ, пользователь)
    __table_args__ = (
        Index(
            "uq_document_permissions_active",
            "document_id", "user_id",
            unique=True,
            postgresql_where=is_active.is_(True),
            sqlite_where=is_active.is_(True),
        ),
        Index("ix_document_permissions_user", "user_id"),
    )
