from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from sqlalchemy.sql import func
from db.session import Base


class Media(Base):
    __tablename__ = "media"

    id = Column(Integer, primary_key=True, autoincrement=True)
    src = Column(String(1024), unique=True, nullable=False)
    alt = Column(Text, nullable=False)
    size = Column("file_size", Integer, nullable=False)
    mime_type = Column(String(100), nullable=False)
    # Storage backend details, e.g. the public id needed to remove the stored file
    additional_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
