"""Employee CRUD endpoints."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from employee_audit.employees.models import EmployeeInput, PageRequest
from employee_audit.errors import InvalidRequestError
from employee_audit.transport.responses import JsonResponse, app_context, read_json_body


def _page_request(request: Request) -> PageRequest:
    return PageRequest.model_validate(dict(request.query_params))


async def list_employees(request: Request) -> Response:
    page = await app_context(request).employees.list_employees(_page_request(request))
    return JsonResponse(page.to_dict())


async def create_employee(request: Request) -> Response:
    data = EmployeeInput.model_validate(await read_json_body(request))
    employee = await app_context(request).employees.create_employee(data)
    return JsonResponse(employee.to_dict(), status_code=201)


async def get_employee(request: Request) -> Response:
    employee = await app_context(request).employees.get_employee_by_id(
        request.path_params["employee_id"]
    )
    return JsonResponse(employee.to_dict())


async def update_employee(request: Request) -> Response:
    data = EmployeeInput.model_validate(await read_json_body(request))
    employee = await app_context(request).employees.update_employee(
        request.path_params["employee_id"], data
    )
    return JsonResponse(employee.to_dict())


async def delete_employee(request: Request) -> Response:
    await app_context(request).employees.delete_employee_by_id(request.path_params["employee_id"])
    return Response(status_code=204)


async def get_employee_by_number(request: Request) -> Response:
    employee = await app_context(request).employees.get_employee_by_number(
        request.path_params["employee_number"]
    )
    return JsonResponse(employee.to_dict())


async def delete_employee_by_number(request: Request) -> Response:
    await app_context(request).employees.delete_employee_by_number(
        request.path_params["employee_number"]
    )
    return Response(status_code=204)


async def search_employees(request: Request) -> Response:
    service = app_context(request).employees
    page = _page_request(request)
    name = request.query_params.get("name")
    furigana = request.query_params.get("furigana")
    if name:
        result = await service.search_by_name(name, page)
    elif furigana:
        result = await service.search_by_furigana(furigana, page)
    else:
        raise InvalidRequestError("Either 'name' or 'furigana' must be given")
    return JsonResponse(result.to_dict())


def employee_routes(prefix: str) -> list[Route]:
    base = f"{prefix}/employees"
    return [
        Route(base, list_employees, methods=["GET"]),
        Route(base, create_employee, methods=["POST"]),
        Route(f"{base}/search", search_employees, methods=["GET"]),
        Route(f"{base}/number/{{employee_number}}", get_employee_by_number, methods=["GET"]),
        Route(
            f"{base}/number/{{employee_number}}", delete_employee_by_number, methods=["DELETE"]
        ),
        Route(f"{base}/{{employee_id:int}}", get_employee, methods=["GET"]),
        Route(f"{base}/{{employee_id:int}}", update_employee, methods=["PUT"]),
        Route(f"{base}/{{employee_id:int}}", delete_employee, methods=["DELETE"]),
    ]
