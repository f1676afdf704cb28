# msu_backend/models/schedule.py
from sqlalchemy import Column, Integer, String, JSON, DateTime
from sqlalchemy.sql import func # Импортируем func
from msu_backend.db.base import Base


class ScheduleDocument(Base):
    """
    Снимки, которые читают клиенты: schedules, free_rooms, teachers
    (и их варианты *_next для следующей недели), app_info и служебные флаги.
    """
    __tablename__ = "schedule_documents"
    key = Column(String(64), primary_key=True)
    payload = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class ScheduledExam(Base):
    __tablename__ = "scheduled_exams"
    # groupId_date_pairIndex - повторная синхронизация перезаписывает ту же запись
    id = Column(String, primary_key=True)
    group = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    type = Column(String, nullable=False)
    date = Column(String(10), nullable=False, index=True)
    time = Column(String(5), nullable=False)
    room = Column(String, nullable=False, default="")
    faculty = Column(String, nullable=False, index=True)
    course = Column(Integer, nullable=False)


class ScheduleArchive(Base):
    __tablename__ = "schedule_archive"
    academic_year = Column(String(9), primary_key=True)
    academic_week = Column(Integer, primary_key=True, autoincrement=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
