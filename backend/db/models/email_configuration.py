from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from db.session import Base


class EmailConfiguration(Base):
    __tablename__ = "email_configurations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    host = Column(String(255), nullable=False)
    port = Column(Integer, default=587, nullable=False)
    # SMTPS when true, STARTTLS otherwise
    secure = Column(Boolean, default=False, nullable=False)
    username = Column(String(255), nullable=True)
    password = Column(String(255), nullable=True)
    from_name = Column(String(255), nullable=True)
    from_email = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
