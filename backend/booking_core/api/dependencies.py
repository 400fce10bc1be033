from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .. import crud
from ..core.config import settings
from ..database import get_db
from ..models.booking import Booking
from ..models.performer_profile import PerformerProfile
from ..models.user import User, UserType
from ..utils.auth import normalize_email
from ..utils.errors import NotFound

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        email: str = payload.get("sub")
        if email is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    # Eager load the performer profile; booking ownership checks need it
    user = db.query(User).options(joinedload(User.performer_profile)).filter(
        func.lower(User.email) == normalize_email(email)
    ).first()
    if user is None:
        raise credentials_exception
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user


def get_current_admin(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.user_type != UserType.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required.",
        )
    return current_user


def get_current_performer(current_user: User = Depends(get_current_active_user)) -> PerformerProfile:
    """The caller's performer profile; only approved performers have one."""
    if current_user.performer_profile is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Performer access required.",
        )
    return current_user.performer_profile


def get_booking_or_404(booking_id: int, db: Session = Depends(get_db)) -> Booking:
    booking = crud.booking.get_booking(db, booking_id)
    if booking is None:
        raise NotFound("Booking not found", field="booking_id")
    return booking
