from sqlalchemy import Column, String, Integer, DateTime, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db.session import Base
from db.models.enums import Role


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    username = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    # Nullable so accounts created by an external identity provider need no password
    password = Column(String(255), nullable=True)
    image = Column(String(1024), nullable=True)
    role = Column(String(50), default=Role.MEMBER.value, nullable=False)
    email_verified = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    otps = relationship("UserOTP", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index("ix_users_username_email", "username", "email"),
    )
