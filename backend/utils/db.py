from sqlalchemy.exc import IntegrityError, DBAPIError
from fastapi import HTTPException

from core.exceptions import AppError


async def safe_commit(session, client_error_message: str = "Invalid request", server_error_message: str = "Internal server error"):
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise AppError(client_error_message, status_code=409, error_code="IntegrityError") from e
    except DBAPIError as e:
        await session.rollback()
        raise HTTPException(status_code=400, detail=client_error_message) from e
    except Exception as e:
        await session.rollback()
        raise HTTPException(status_code=500, detail=server_error_message) from e
