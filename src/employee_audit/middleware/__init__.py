from employee_audit.middleware.request_context import RequestContextMiddleware, get_client_ip

__all__ = ["RequestContextMiddleware", "get_client_ip"]
