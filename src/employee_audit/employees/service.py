"""Employee business operations with caching, transaction tracking and business events."""

from __future__ import annotations

import time

from employee_audit.cache import CacheManager
from employee_audit.employees.models import Employee, EmployeeInput, Page, PageRequest
from employee_audit.employees.repository import EmployeeRepository
from employee_audit.errors import DuplicateError, NotFoundError
from employee_audit.events import StructuredEventLogger
from employee_audit.monitoring.cache_metrics import CacheMetrics
from employee_audit.monitoring.transaction_metrics import TransactionMetrics

EMPLOYEE_CACHE = "employees"

_BUSINESS_ERRORS = (NotFoundError, DuplicateError)


class EmployeeService:
    def __init__(
        self,
        repository: EmployeeRepository,
        cache_manager: CacheManager,
        cache_metrics: CacheMetrics,
        transaction_metrics: TransactionMetrics,
        events: StructuredEventLogger,
    ) -> None:
        self._repository = repository
        self._cache = cache_manager.get_or_create(EMPLOYEE_CACHE)
        self._cache_metrics = cache_metrics
        self._transactions = transaction_metrics
        self._events = events

    # Cache helpers. Entries are keyed both by id and by employee number.

    def _cache_get(self, key: str) -> Employee | None:
        started = time.perf_counter()
        employee = self._cache.get(key)
        self._cache_metrics.record_cache_operation_time(
            EMPLOYEE_CACHE, "get", (time.perf_counter() - started) * 1000
        )
        if employee is None:
            self._cache_metrics.record_cache_miss(EMPLOYEE_CACHE, key)
        else:
            self._cache_metrics.record_cache_hit(EMPLOYEE_CACHE, key)
        return employee

    def _cache_put(self, employee: Employee) -> None:
        for key in (f"id:{employee.employee_id}", f"number:{employee.employee_number}"):
            self._cache.put(key, employee)
            self._cache_metrics.record_cache_put(EMPLOYEE_CACHE, key)

    def _cache_evict(self, employee: Employee) -> None:
        for key in (f"id:{employee.employee_id}", f"number:{employee.employee_number}"):
            if self._cache.evict(key):
                self._cache_metrics.record_cache_evict(EMPLOYEE_CACHE, key)

    async def get_employee_by_id(self, employee_id: int) -> Employee:
        cached = self._cache_get(f"id:{employee_id}")
        if cached is not None:
            return cached
        employee = await self._repository.find_by_id(employee_id)
        if employee is None:
            raise NotFoundError(f"Employee not found: id={employee_id}")
        self._cache_put(employee)
        return employee

    async def get_employee_by_number(self, employee_number: str) -> Employee:
        cached = self._cache_get(f"number:{employee_number}")
        if cached is not None:
            return cached
        employee = await self._repository.find_by_employee_number(employee_number)
        if employee is None:
            raise NotFoundError(f"Employee not found: number={employee_number}")
        self._cache_put(employee)
        return employee

    async def create_employee(self, data: EmployeeInput) -> Employee:
        async def action() -> Employee:
            if await self._repository.exists_by_employee_number(data.employee_number):
                raise DuplicateError(f"Employee number already exists: {data.employee_number}")
            employee_id = await self._repository.insert(data)
            created = await self._repository.find_by_id(employee_id)
            if created is None:
                raise RuntimeError(f"Created employee {employee_id} could not be read back")
            return created

        employee = await self._transactions.monitor_transaction(
            "CREATE_EMPLOYEE",
            f"employeeNumber={data.employee_number}",
            action,
            rollback_on=_BUSINESS_ERRORS,
        )
        self._cache_put(employee)
        self._events.log_business_operation(
            "CREATE_EMPLOYEE",
            "Employee",
            str(employee.employee_id),
            details=employee.snapshot(),
        )
        return employee

    async def update_employee(self, employee_id: int, data: EmployeeInput) -> Employee:
        async def action() -> tuple[Employee, Employee]:
            existing = await self._repository.find_by_id(employee_id)
            if existing is None:
                raise NotFoundError(f"Employee not found: id={employee_id}")
            if data.employee_number != existing.employee_number and (
                await self._repository.exists_by_employee_number(data.employee_number)
            ):
                raise DuplicateError(f"Employee number already exists: {data.employee_number}")
            await self._repository.update(employee_id, data)
            updated = await self._repository.find_by_id(employee_id)
            if updated is None:
                raise NotFoundError(f"Employee not found: id={employee_id}")
            return existing, updated

        existing, updated = await self._transactions.monitor_transaction(
            "UPDATE_EMPLOYEE",
            f"employeeId={employee_id}",
            action,
            rollback_on=_BUSINESS_ERRORS,
        )
        self._cache_evict(existing)
        self._cache_put(updated)
        self._events.log_business_operation(
            "UPDATE_EMPLOYEE",
            "Employee",
            str(employee_id),
            details={"before": existing.snapshot(), "after": updated.snapshot()},
        )
        return updated

    async def delete_employee_by_id(self, employee_id: int) -> None:
        async def action() -> Employee:
            existing = await self._repository.find_by_id(employee_id)
            if existing is None:
                raise NotFoundError(f"Employee not found: id={employee_id}")
            await self._repository.delete_by_id(employee_id)
            return existing

        deleted = await self._transactions.monitor_transaction(
            "DELETE_EMPLOYEE",
            f"employeeId={employee_id}",
            action,
            rollback_on=_BUSINESS_ERRORS,
        )
        self._cache_evict(deleted)
        self._events.log_business_operation(
            "DELETE_EMPLOYEE", "Employee", str(employee_id), details=deleted.snapshot()
        )

    async def delete_employee_by_number(self, employee_number: str) -> None:
        employee = await self._repository.find_by_employee_number(employee_number)
        if employee is None:
            raise NotFoundError(f"Employee not found: number={employee_number}")
        await self.delete_employee_by_id(employee.employee_id)

    async def list_employees(self, page: PageRequest) -> Page:
        rows, total = await self._repository.list_page(page)
        return Page(rows, page.page, page.size, total, page.sort_by, page.sort_direction)

    async def search_by_name(self, name: str, page: PageRequest) -> Page:
        rows, total = await self._repository.search("name", name, page)
        return Page(rows, page.page, page.size, total, page.sort_by, page.sort_direction)

    async def search_by_furigana(self, furigana: str, page: PageRequest) -> Page:
        rows, total = await self._repository.search("furigana", furigana, page)
        return Page(rows, page.page, page.size, total, page.sort_by, page.sort_direction)
