from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from zeitkonto import models  # noqa: F401
from zeitkonto.audit import Actor
from zeitkonto.db import Base
from zeitkonto.models import AuditActorType, Employee, WeeklyShiftTemplate, WeeklyShiftTemplateDay

ADMIN = Actor(type=AuditActorType.ADMIN, name="Petra")
EMPLOYEE = Actor(type=AuditActorType.EMPLOYEE, name="Anna")


def make_session() -> Session:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    return factory()


def add_employee(db: Session, **overrides) -> Employee:
    values = {
        "full_name": "Anna Berger",
        "max_minus_hours": 20.0,
        "max_overtime_hours": 40.0,
    }
    values.update(overrides)
    employee = Employee(**values)
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def add_weekday_template(
    db: Session,
    employee_id: int,
    *,
    start: str = "08:00",
    end: str = "16:30",
    required_pause_minutes: int = 30,
) -> WeeklyShiftTemplate:
    """Monday to Friday, one shift per day (8.0 planned hours with the defaults)."""
    template = WeeklyShiftTemplate(
        employee_id=employee_id,
        two_week_cycle=False,
        days=[
            WeeklyShiftTemplateDay(
                week_index=1,
                weekday=weekday,
                start_time=start,
                end_time=end,
                required_pause_minutes=required_pause_minutes,
            )
            for weekday in range(5)
        ],
    )
    db.add(template)
    db.commit()
    return template
