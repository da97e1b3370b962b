"""
User profile reads and updates for the authenticated caller.

Only ``email`` and ``username`` are editable. ``wallet_address`` and the
admin role are never touched here.
"""

from typing import Optional

from sqlalchemy.orm import Session

from app.core.errors import Conflict, NotFound
from app.models.users import User


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User not found")
    return user


def update_profile(
    db: Session,
    user_id: str,
    email: Optional[str] = None,
    username: Optional[str] = None,
) -> User:
    """
    Update the given profile fields, leaving omitted ones unchanged.

    Raises:
        NotFound: unknown user
        Conflict: email or username already used by another user
        ValueError: username shorter than 3 or longer than 50 characters
    """
    user = get_user(db, user_id)

    if email is not None:
        email = email.strip().lower()
        taken = db.query(User.id).filter(User.email == email, User.id != user_id).first()
        if taken:
            raise Conflict("Email already in use")
        user.email = email

    if username is not None:
        username = username.strip()
        if not 3 <= len(username) <= 50:
            raise ValueError("Username must be 3 to 50 characters")
        taken = db.query(User.id).filter(User.username == username, User.id != user_id).first()
        if taken:
            raise Conflict("Username already taken")
        user.username = username

    db.commit()
    db.refresh(user)
    return user
