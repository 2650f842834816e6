from employee_audit.employees.models import Employee, EmployeeInput, Page, PageRequest
from employee_audit.employees.repository import EMPLOYEE_SCHEMA, EMPLOYEE_TABLE, EmployeeRepository
from employee_audit.employees.service import EMPLOYEE_CACHE, EmployeeService

__all__ = [
    "EMPLOYEE_CACHE",
    "EMPLOYEE_SCHEMA",
    "EMPLOYEE_TABLE",
    "Employee",
    "EmployeeInput",
    "EmployeeRepository",
    "EmployeeService",
    "Page",
    "PageRequest",
]
