"""User service for account storage on the sync server."""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from lexibook.errors import ValidationError
from lexibook.models.models import User

# Configure logging
logger = logging.getLogger(__name__)


class UserService:
    """Service for creating and looking up accounts."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        return self.db.query(User).filter(User.email == email).first()

    def get_by_username(self, username: str) -> Optional[User]:
        """Get user by username."""
        return self.db.query(User).filter(User.username == username).first()

    def create_user(self, username: str, email: str, password: str) -> User:
        """Create an account with a hashed password.

        Raises ValidationError if the email or username is taken.
        """
        if self.get_by_email(email):
            raise ValidationError("This email is already registered")
        if self.get_by_username(username):
            raise ValidationError("This username is already taken")

        user = User(
            username=username,
            email=email,
            password_hash=generate_password_hash(password),
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            self.db.rollback()
            raise ValidationError("This email or username is already in use") from e
        self.db.refresh(user)

        logger.info("User created: %s (ID: %d)", user.username, user.id)
        return user

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user if the email and password match."""
        user = self.get_by_email(email)
        if user is None or not check_password_hash(user.password_hash, password):
            return None
        return user
