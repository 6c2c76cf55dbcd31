from sqlalchemy import Column, String

from doccollab.db.base import BaseModel


class Profile(BaseModel):
    __tablename__ = "profiles"

    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=True)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(String(500), nullable=True)
