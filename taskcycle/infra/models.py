from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, Time
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.utcnow()


class RecurrenceModel(Base):
    __tablename__ = "task_recurrences"

    id = Column(Integer, primary_key=True)
    interval = Column(Integer, nullable=True)
    max_occurrences = Column(Integer, nullable=True)
    completed_occurrences = Column(Integer, nullable=False, default=0)
    last_period_start = Column(Date, nullable=True)
    days_of_week = Column(JSON, nullable=True)
    days_of_month = Column(JSON, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String(255), nullable=False, index=True)
    name = Column(String(512), nullable=False)
    description = Column(Text, nullable=False, default="")
    importance = Column(Integer, nullable=False, default=5)
    is_active = Column(Boolean, nullable=False, default=True)
    is_fixed = Column(Boolean, nullable=False, default=False)
    fixed_start_time = Column(Time, nullable=True)
    fixed_end_time = Column(Time, nullable=True)
    recurrence_id = Column(Integer, ForeignKey("task_recurrences.id"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)

    recurrence = relationship(RecurrenceModel, lazy="joined")


class OccurrenceModel(Base):
    __tablename__ = "task_occurrences"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False, index=True)
    target_date = Column(Date, nullable=True)
    limit_date = Column(Date, nullable=True)
    target_time_consumption = Column(Float, nullable=True)
    time_consumed = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False, default="Pending", index=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    task = relationship(TaskModel, lazy="joined")


class CalendarEventModel(Base):
    __tablename__ = "calendar_events"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String(255), nullable=False, index=True)
    occurrence_id = Column(Integer, ForeignKey("task_occurrences.id"), nullable=True, index=True)
    is_fixed = Column(Boolean, nullable=False, default=False)
    start = Column(DateTime, nullable=False, index=True)
    finish = Column(DateTime, nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    dedicated_time = Column(Float, nullable=False, default=0.0)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
