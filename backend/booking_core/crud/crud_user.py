from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models, schemas
from ..core.config import settings
from ..utils.auth import get_password_hash, normalize_email


class CRUDUser:
    def get_user_by_email(self, db: Session, email: str) -> Optional[models.User]:
        return (
            db.query(models.User)
            .filter(func.lower(models.User.email) == normalize_email(email))
            .first()
        )

    def create_user(self, db: Session, user_in: schemas.UserCreate) -> models.User:
        email = normalize_email(user_in.email)
        # Allowlisted addresses become admins; everyone else starts as a client
        user_type = (
            models.UserType.ADMIN if email in settings.admin_emails else models.UserType.CLIENT
        )
        db_user = models.User(
            email=email,
            password=get_password_hash(user_in.password),
            first_name=user_in.first_name,
            last_name=user_in.last_name,
            phone_number=user_in.phone_number,
            user_type=user_type,
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        return db_user

    def get_admins(self, db: Session) -> List[models.User]:
        return (
            db.query(models.User)
            .filter(
                models.User.user_type == models.UserType.ADMIN,
                models.User.is_active.is_(True),
            )
            .order_by(models.User.id.asc())
            .all()
        )


user = CRUDUser()  # Create an instance for easy import
