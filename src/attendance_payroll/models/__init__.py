"""ORM models."""

from attendance_payroll.models.base import Base, JSONType, TimestampMixin, UpdatedAtMixin
from attendance_payroll.models.employee import AttendanceRecord, Employee, LeaveRequest
from attendance_payroll.models.finance import (
    EmployeeAdvance,
    EmployeeAllowance,
    EmployeeBonus,
    EmployeeDeduction,
    EmployeeLoan,
    EmployeePayComponent,
)
from attendance_payroll.models.organization import (
    Client,
    ClientSetting,
    Department,
    Designation,
    Holiday,
)
from attendance_payroll.models.payroll import (
    PayrollAuditLog,
    PayrollComponent,
    PayrollPeriod,
    PayrollRecord,
    PayrollRecordComponent,
    PayrollRun,
)

__all__ = [
    "AttendanceRecord",
    "Base",
    "Client",
    "ClientSetting",
    "Department",
    "Designation",
    "Employee",
    "EmployeeAdvance",
    "EmployeeAllowance",
    "EmployeeBonus",
    "EmployeeDeduction",
    "EmployeeLoan",
    "EmployeePayComponent",
    "Holiday",
    "JSONType",
    "LeaveRequest",
    "PayrollAuditLog",
    "PayrollComponent",
    "PayrollPeriod",
    "PayrollRecord",
    "PayrollRecordComponent",
    "PayrollRun",
    "TimestampMixin",
    "UpdatedAtMixin",
]
