"""Database seeder: email configuration, email templates and the admin user.

Usage: python seed.py [all|users|emailconfigs|emails|clear]
"""
import argparse
import asyncio
import logging
import sys
import time
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from db.base import initialize_database
from db.models.email_configuration import EmailConfiguration
from db.models.email_template import EmailTemplate
from db.models.enums import Role
from db.models.user import User
from db.models.user_otp import UserOTP
from db.session import SessionLocal, engine
from services.user_service import create_user

logger = logging.getLogger("seeder")

_OTP_BLOCK = """
      <p style='font-size: 24px; font-weight: bold; letter-spacing: 4px;'>{{ otp }}</p>
      <p>This code will expire in <strong>{{ otp_expiration_time }} minutes</strong>.</p>
"""

EMAIL_TEMPLATES = [
    {
        "name": "account_verification_otp",
        "subject": "Verify your email address",
        "text": "Hi {{ username }}, your verification code is {{ otp }}. It expires in {{ otp_expiration_time }} minutes.",
        "html": f"""
    <div style='font-family: Arial, sans-serif; line-height: 1.5;'>
      <h2>Verify your email address</h2>
      <p>Hi {{{{ username }}}}, thanks for signing up! Use the code below to verify your account.</p>{_OTP_BLOCK}
      <p>If you did not create an account, you can safely ignore this email.</p>
    </div>
    """,
    },
    {
        "name": "login_otp",
        "subject": "Your login code",
        "text": "Hi {{ username }}, your login code is {{ otp }}. It expires in {{ otp_expiration_time }} minutes.",
        "html": f"""
    <div style='font-family: Arial, sans-serif; line-height: 1.5;'>
      <h2>Confirm your sign in</h2>
      <p>Hi {{{{ username }}}}, use the code below to finish signing in.</p>{_OTP_BLOCK}
      <p>If this wasn't you, change your password right away.</p>
    </div>
    """,
    },
    {
        "name": "password_reset",
        "subject": "Reset your password",
        "text": "Hi {{ username }}, your password reset code is {{ otp }}. It expires in {{ otp_expiration_time }} minutes.",
        "html": f"""
    <div style='font-family: Arial, sans-serif; line-height: 1.5;'>
      <h2>Reset your password</h2>
      <p>Hi {{{{ username }}}}, use the One-Time Password (OTP) below to reset your password.</p>{_OTP_BLOCK}
      <p>If you did not request a password reset, you can safely ignore this email.</p>
    </div>
    """,
    },
]


class EmailConfigSeeder:
    async def run(self, db: AsyncSession) -> int:
        if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
            logger.warning("SMTP_HOST/SMTP_FROM_EMAIL not set; skipping email configuration seed")
            return 0
        existing = await db.execute(select(EmailConfiguration).where(EmailConfiguration.host == settings.SMTP_HOST))
        if existing.scalars().first() is not None:
            logger.info("Email configuration already present")
            return 0
        db.add(EmailConfiguration(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            secure=settings.SMTP_USE_SSL,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            from_name=settings.SMTP_FROM_NAME,
            from_email=settings.SMTP_FROM_EMAIL,
            is_active=True,
        ))
        await db.commit()
        logger.info(f"Seeded email configuration for {settings.SMTP_HOST}")
        return 1

    async def clear(self, db: AsyncSession) -> None:
        await db.execute(delete(EmailConfiguration))
        await db.commit()


class EmailTemplateSeeder:
    async def run(self, db: AsyncSession) -> int:
        result = await db.execute(select(EmailTemplate.name))
        existing = set(result.scalars().all())
        created = 0
        for template in EMAIL_TEMPLATES:
            if template["name"] in existing:
                continue
            db.add(EmailTemplate(**template))
            created += 1
        await db.commit()
        logger.info(f"Seeded {created} email template(s)")
        return created

    async def clear(self, db: AsyncSession) -> None:
        await db.execute(delete(EmailTemplate))
        await db.commit()


class UserSeeder:
    async def run(self, db: AsyncSession) -> int:
        existing = await db.execute(
            select(User).where((User.username == settings.ADMIN_USERNAME) | (User.email == settings.ADMIN_EMAIL.lower()))
        )
        if existing.scalars().first() is not None:
            logger.info("Admin user already present")
            return 0
        await create_user(
            db,
            name=settings.ADMIN_NAME,
            username=settings.ADMIN_USERNAME,
            email=settings.ADMIN_EMAIL,
            password=settings.ADMIN_PASSWORD,
            role=Role.ADMIN,
            email_verified=True,
        )
        logger.info(f"Seeded admin user {settings.ADMIN_USERNAME}")
        return 1

    async def clear(self, db: AsyncSession) -> None:
        await db.execute(delete(UserOTP))
        await db.execute(delete(User))
        await db.commit()


class SuperSeeder:
    """Runs every seeder in dependency order."""

    def __init__(self):
        self.email_config_seeder = EmailConfigSeeder()
        self.email_template_seeder = EmailTemplateSeeder()
        self.user_seeder = UserSeeder()

    async def run_all(self, db: AsyncSession) -> None:
        start = time.perf_counter()
        # Email configuration first, then templates, then users
        await self.email_config_seeder.run(db)
        await self.email_template_seeder.run(db)
        await self.user_seeder.run(db)
        logger.info(f"Seeding completed in {time.perf_counter() - start:.2f}s")

    async def run_users(self, db: AsyncSession) -> None:
        await self.user_seeder.run(db)

    async def run_email_configs(self, db: AsyncSession) -> None:
        await self.email_config_seeder.run(db)

    async def run_email_templates(self, db: AsyncSession) -> None:
        await self.email_template_seeder.run(db)

    async def clear_all(self, db: AsyncSession) -> None:
        await self.user_seeder.clear(db)
        await self.email_template_seeder.clear(db)
        await self.email_config_seeder.clear(db)
        logger.info("All seeded data cleared")


COMMANDS = {
    "all": SuperSeeder.run_all,
    "run": SuperSeeder.run_all,
    "users": SuperSeeder.run_users,
    "user": SuperSeeder.run_users,
    "emailconfigs": SuperSeeder.run_email_configs,
    "emailconfig": SuperSeeder.run_email_configs,
    "email-configs": SuperSeeder.run_email_configs,
    "email-config": SuperSeeder.run_email_configs,
    "emails": SuperSeeder.run_email_templates,
    "email": SuperSeeder.run_email_templates,
    "templates": SuperSeeder.run_email_templates,
    "clear": SuperSeeder.clear_all,
}

USAGE = """Usage: python seed.py [all|users|emailconfigs|emails|clear]
  all (default) - Run all seeders
  users         - Run only user seeder
  emailconfigs  - Run only email configuration seeder
  emails        - Run only email template seeder
  clear         - Clear all seeded data"""


async def run_command(command: str, db: Optional[AsyncSession] = None) -> bool:
    action = COMMANDS.get(command.lower())
    if action is None:
        print(USAGE)
        return False
    seeder = SuperSeeder()
    if db is not None:
        await action(seeder, db)
        return True
    await initialize_database()
    try:
        async with SessionLocal() as session:
            await action(seeder, session)
    finally:
        await engine.dispose()
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed the database", epilog=USAGE, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("command", nargs="?", default="all", help="Seeder to run (default: all)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(asctime)s - %(name)s - %(message)s")
    try:
        asyncio.run(run_command(args.command))
    except Exception as e:
        logger.error(f"Seeder execution failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
