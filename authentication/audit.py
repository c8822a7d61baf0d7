"""
Audit logging helpers shared by the API views and the audit middleware.
"""

import logging

from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """
    Client IP, honouring the first hop of X-Forwarded-For when present.
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def log_audit_event(request, action, resource_type, resource_id, status, metadata=None):
    """
    Persist an AuditLog row for the request.

    Audit logging never fails the request it describes: storage errors are
    reported through the module logger instead.
    """
    user = getattr(request, "user", None)
    try:
        AuditLog.objects.create(
            user=user if user is not None and user.is_authenticated else None,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id else None,
            ip_address=get_client_ip(request),
            user_agent=request.META.get("HTTP_USER_AGENT", ""),
            request_path=request.path,
            request_method=request.method,
            status=status,
            metadata=metadata or {},
        )
    except Exception as e:
        logger.error(f"Error writing audit log for {action} {resource_type}: {e}")
