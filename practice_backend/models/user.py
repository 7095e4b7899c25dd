"""User model definitions."""

from sqlalchemy import Column, Integer, String
from practice_backend.database import Base


class User(Base):
    """Represents a staff member who can sign in."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False, default="")
    hashed_password = Column(String)
    role = Column(String, nullable=False, default="psychologist")  # admin/psychologist/receptionist
