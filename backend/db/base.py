from db.session import Base, engine
from db.models.user import User  # noqa: F401
from db.models.user_otp import UserOTP  # noqa: F401
from db.models.email_template import EmailTemplate  # noqa: F401
from db.models.email_configuration import EmailConfiguration  # noqa: F401
from db.models.media import Media  # noqa: F401
import logging

logger = logging.getLogger(__name__)

async def initialize_database():
    """Create tables only. Run seed.py to populate templates, SMTP config and the admin user."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
