import logging
from typing import Optional
from sqlmodel import Session
from services.db.models import User, utcnow

log = logging.getLogger(__name__)

class UserService:
    def __init__(self, session: Session):
        self.session = session

    def ensure_user(
        self,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        """
        Return the User for an authenticated id, creating it on first sight.
        Profile fields supplied by the identity provider refresh the stored ones.
        Reputation fields are never touched here.
        """
        user = self.session.get(User, user_id)
        if user is None:
            user = User(id=user_id, name=name, email=email, avatar_url=avatar_url)
            self.session.add(user)
            self.session.commit()
            log.info(f"👤 Created user {user_id} on first authentication")
            return user

        changed = False
        for field, value in (("name", name), ("email", email), ("avatar_url", avatar_url)):
            if value is not None and getattr(user, field) != value:
                setattr(user, field, value)
                changed = True
        if changed:
            user.updated_at = utcnow()
            self.session.add(user)
            self.session.commit()
        return user
