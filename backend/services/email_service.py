import asyncio
import logging
import re
from typing import Any, Mapping, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import EmailConfigurationNotFound, NotificationDeliveryFailed
from db.models.email_configuration import EmailConfiguration
from db.models.email_template import EmailTemplate
from schemas.email_schema import EmailConfigurationUpdate
from schemas.query_schema import ListQuery
from utils.db import safe_commit
from utils.email import SMTPOptions, send_email, check_smtp_connection
from utils.sorting import SortingHelper

logger = logging.getLogger("authkit.security")

PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")

email_configuration_sorting = SortingHelper(EmailConfiguration, ["id", "host", "port", "from_email", "is_active", "created_at", "updated_at"])


def render_template(text: Optional[str], data: Mapping[str, Any]) -> Optional[str]:
    """Replace ``{{ key }}`` placeholders; unknown keys render as empty strings."""
    if text is None:
        return None
    return PLACEHOLDER_RE.sub(lambda m: str(data.get(m.group(1), "")), text)


async def retrieve_email_template(db: AsyncSession, name: str) -> Optional[EmailTemplate]:
    result = await db.execute(select(EmailTemplate).where(EmailTemplate.name == name))
    return result.scalars().first()


async def get_active_email_configuration(db: AsyncSession) -> Optional[EmailConfiguration]:
    result = await db.execute(
        select(EmailConfiguration).where(EmailConfiguration.is_active.is_(True)).order_by(EmailConfiguration.id).limit(1)
    )
    return result.scalars().first()


async def get_smtp_options(db: AsyncSession) -> Optional[SMTPOptions]:
    config = await get_active_email_configuration(db)
    if config is not None:
        return SMTPOptions.from_configuration(config)
    return SMTPOptions.from_settings()


async def send_template_email(db: AsyncSession, template_name: str, to_email: str, data: Mapping[str, Any]) -> bool:
    """Render and send a stored template. Best effort: failures are logged, never raised."""
    try:
        template = await retrieve_email_template(db, template_name)
        if template is None:
            raise NotificationDeliveryFailed(f"Email template '{template_name}' does not exist")
        options = await get_smtp_options(db)
        if options is None:
            raise NotificationDeliveryFailed("SMTP is not configured")
        await asyncio.to_thread(
            send_email,
            render_template(template.subject, data),
            to_email,
            render_template(template.html, data),
            render_template(template.text, data),
            options,
        )
        return True
    except NotificationDeliveryFailed as exc:
        logger.error(f"Email '{template_name}' to {to_email} not delivered: {exc.message}")
        return False
    except Exception as exc:
        logger.exception(f"Email '{template_name}' to {to_email} not delivered: {exc}")
        return False


async def send_otp_email(db: AsyncSession, template_name: str, user, otp: str, expiration_minutes: int) -> bool:
    return await send_template_email(db, template_name, user.email, {
        "name": user.name,
        "username": user.username,
        "otp": otp,
        "otp_expiration_time": expiration_minutes,
    })


async def list_email_configurations(db: AsyncSession, query: ListQuery) -> dict:
    conditions = []
    if query.search:
        pattern = f"%{query.search.strip()}%"
        conditions.append(EmailConfiguration.host.ilike(pattern) | EmailConfiguration.from_email.ilike(pattern))
    total = (await db.execute(select(func.count(EmailConfiguration.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(EmailConfiguration)
        .where(*conditions)
        .order_by(email_configuration_sorting.apply_sorting(query.sort_by, query.sort_order))
        .offset((query.page - 1) * query.limit)
        .limit(query.limit)
    )
    return {
        "items": result.scalars().all(),
        "pagination": {
            "page": query.page,
            "limit": query.limit,
            "total": total,
            "total_pages": (total + query.limit - 1) // query.limit,
        },
    }


async def get_email_configuration(db: AsyncSession, config_id: int) -> EmailConfiguration:
    result = await db.execute(select(EmailConfiguration).where(EmailConfiguration.id == config_id))
    config = result.scalars().first()
    if config is None:
        raise EmailConfigurationNotFound()
    return config


async def update_email_configuration(db: AsyncSession, config_id: int, data: EmailConfigurationUpdate) -> EmailConfiguration:
    config = await get_email_configuration(db, config_id)
    values = data.model_dump()
    # Keep the stored secret when the client does not send a new one
    if not values.get("password"):
        values.pop("password")
    for key, value in values.items():
        setattr(config, key, value)
    await safe_commit(db, client_error_message="Invalid email configuration")
    await db.refresh(config)
    logger.info(f"Email configuration {config_id} updated")
    return config


async def try_smtp_settings(data: EmailConfigurationUpdate) -> None:
    """Try the given SMTP settings without saving them; raises NotificationDeliveryFailed."""
    options = SMTPOptions.from_configuration(data)
    await asyncio.to_thread(check_smtp_connection, options)
