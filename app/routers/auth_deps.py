"""
Request identity and collaborator dependencies.
Tokens are issued by the identity provider; this module only validates them.
"""
import logging

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import AccessDeniedError, AuthenticationError
from app.database import get_db
from app.models.user import User
from app.schemas.auth import TokenData
from app.services import auth as auth_service
from app.services.employee_directory import EmployeeDirectory, get_employee_directory

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/auth/token")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """
    Extracts and validates the current user from the JWT token.
    """
    payload = auth_service.decode_access_token(token)

    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise AuthenticationError()

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise AuthenticationError("TOKEN_EXPIRED")

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise AuthenticationError("Invalid token type")

    token_data = TokenData(email=payload.get("sub"), role=payload.get("role"), user_id=payload.get("user_id"))
    if token_data.email is None:
        logger.warning("Authentication failed: Missing subject (email) in token")
        raise AuthenticationError("Missing subject in token")

    user = db.query(User).filter(User.email == token_data.email).first()
    if user is None:
        logger.warning(f"Authentication failed: User {token_data.email} not found in database")
        raise AuthenticationError("User not found")
    if not user.is_active:
        logger.warning(f"Authentication failed: User {token_data.email} is inactive")
        raise AccessDeniedError("User is inactive")
    return user


def get_directory(db: Session = Depends(get_db)) -> EmployeeDirectory:
    return get_employee_directory(db)
