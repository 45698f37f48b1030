from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from zeitkonto.errors import EmployeeNotFoundError
from zeitkonto.models import Employee


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise EmployeeNotFoundError(employee_id)
    return employee


def lock_employee(db: Session, employee_id: int) -> Employee:
    """Load the employee row with a write lock held until the transaction ends.

    Every write path that ends in a ledger recompute goes through here first so
    two concurrent saves for the same employee serialize.
    """
    employee = db.scalar(
        select(Employee).where(Employee.id == employee_id).with_for_update()
    )
    if employee is None:
        raise EmployeeNotFoundError(employee_id)
    return employee
