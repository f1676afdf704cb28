# msu_backend/models/user.py
from sqlalchemy import Boolean, Column, BigInteger, String, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func
from msu_backend.db.base import Base

class User(Base):
    __tablename__ = "users"

    uid = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=True)
    name = Column(String, nullable=True)

    faculty_code = Column(String, nullable=True, index=True)
    course = Column(Integer, nullable=True)
    role = Column(String, nullable=False, server_default="student")


class UserNotification(Base):
    """История уведомлений пользователя (то, что он видит во вкладке уведомлений)."""
    __tablename__ = "user_notifications"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    user_uid = Column(String, ForeignKey("users.uid"), nullable=False, index=True)
    title = Column(String, nullable=False)
    body = Column(String, nullable=False)
    type = Column(String, nullable=False, server_default="info")
    is_read = Column(Boolean, server_default="false", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
