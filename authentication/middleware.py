"""
Request middleware for the storefront API.

- AuditLoggingMiddleware records mutating API requests (orders, payments,
  catalog, auth) in the AuditLog table once the response status is known.
- SecurityHeadersMiddleware stamps hardening headers on every response.
"""

import logging

from django.utils.deprecation import MiddlewareMixin

from .audit import log_audit_event

logger = logging.getLogger(__name__)


class AuditLoggingMiddleware(MiddlewareMixin):
    """
    Audit trail for write requests under /api/.

    Gateway callbacks are included: they are unauthenticated POSTs that move
    money-related state and must be traceable.
    """

    LOGGED_METHODS = ("POST", "PUT", "PATCH", "DELETE")

    EXCLUDED_PATHS = (
        "/api/auth/token/refresh/",
        "/static/",
        "/media/",
    )

    RESOURCE_TYPES = (
        ("/api/payments/", "PAYMENT"),
        ("/api/admin/orders/", "ORDER"),
        ("/api/orders/", "ORDER"),
        ("/api/products/", "PRODUCT"),
        ("/api/auth/", "USER"),
    )

    def process_request(self, request):
        if request.path.startswith(self.EXCLUDED_PATHS):
            return None
        if request.path.startswith("/api/") and request.method in self.LOGGED_METHODS:
            request._audit_action = self._determine_action(request)
            request._audit_resource_type = self._determine_resource_type(request.path)
        return None

    def process_response(self, request, response):
        if not hasattr(request, "_audit_action"):
            return response

        if 200 <= response.status_code < 300:
            status = "SUCCESS"
        elif response.status_code in (401, 403):
            status = "BLOCKED"
        else:
            status = "FAILURE"

        resource_id = None
        data = getattr(response, "data", None)
        if isinstance(data, dict):
            order = data.get("order")
            if isinstance(order, dict):
                resource_id = order.get("order_number") or order.get("id")
            else:
                resource_id = data.get("id")

        log_audit_event(
            request,
            request._audit_action,
            request._audit_resource_type,
            resource_id,
            status,
            {"status_code": response.status_code},
        )
        return response

    def process_exception(self, request, exception):
        if hasattr(request, "_audit_action"):
            log_audit_event(
                request,
                request._audit_action,
                request._audit_resource_type,
                None,
                "FAILURE",
                {
                    "exception_type": type(exception).__name__,
                    "exception_message": str(exception),
                },
            )
        return None

    def _determine_action(self, request):
        path = request.path.lower()
        if request.method == "POST":
            if path.endswith("/cancel/"):
                return "CANCEL"
            if "login" in path:
                return "LOGIN"
            if "register" in path:
                return "REGISTER"
            if "callback" in path:
                return "PAYMENT_CALLBACK"
            return "CREATE"
        if request.method in ("PUT", "PATCH"):
            if path.endswith("/status/"):
                return "UPDATE_STATUS"
            return "UPDATE"
        return "DELETE"

    def _determine_resource_type(self, path):
        for prefix, resource_type in self.RESOURCE_TYPES:
            if path.startswith(prefix):
                return resource_type
        return "UNKNOWN"


class SecurityHeadersMiddleware(MiddlewareMixin):
    """
    Adds browser hardening headers to every response.

    The API only serves JSON, so the content security policy is locked down
    to same-origin resources.
    """

    CONTENT_SECURITY_POLICY = (
        "default-src 'self'; "
        "img-src 'self' data: https:; "
        "style-src 'self' 'unsafe-inline'; "
        "frame-ancestors 'none';"
    )

    def process_response(self, request, response):
        response["X-Content-Type-Options"] = "nosniff"
        response["X-Frame-Options"] = "DENY"
        response["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response["Content-Security-Policy"] = self.CONTENT_SECURITY_POLICY
        response["Permissions-Policy"] = "camera=(), geolocation=(), microphone=(), usb=()"
        return response
