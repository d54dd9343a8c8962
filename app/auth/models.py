from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db.session import Base


class User(Base):
    """Employee account. ``department`` partitions the leave conflict policy."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    staff_id = Column(String(20), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    department = Column(String(100), nullable=False, index=True)
    # staff | hod | dean | admin
    role = Column(String(20), nullable=False, default="staff")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
