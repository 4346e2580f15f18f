from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import db_manager
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.core.config import settings
from app.schemas.token_schema import TokenData

# Tokens are issued by the auth service; this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in db_manager.get_db_session():
        yield session

# --- Caller Identity Dependencies ---

async def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenData:
    """
    Dependency to get the caller identity from a JWT token.
    The `sub` claim is the user id every billing operation is scoped to.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception

        return TokenData(
            sub=str(user_id),
            role=payload.get("role"),
            name=payload.get("name"),
            email=payload.get("email"),
        )
    except JWTError:
        raise credentials_exception

async def get_current_admin(current_user: TokenData = Depends(get_current_user)) -> TokenData:
    """
    Dependency to ensure the caller may manage the plan catalog.
    """
    if current_user.role != 'admin':
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The user does not have admin privileges",
        )
    return current_user
