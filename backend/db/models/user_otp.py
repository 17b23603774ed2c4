from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db.session import Base


class UserOTP(Base):
    """One row per (user, purpose); a new issuance overwrites the row."""

    __tablename__ = "user_otps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    purpose = Column(String(50), nullable=False)
    code = Column(String(10), nullable=False)
    # Naive UTC
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="otps")

    __table_args__ = (
        UniqueConstraint("user_id", "purpose", name="uq_user_otps_user_purpose"),
    )
