"""
Exceptions for the tenant center.

Service and session code raises these; app.main maps the ones carrying a
status_code to HTTP responses.
"""
from typing import Any, Optional


class TenantCenterException(Exception):
    """
    Base exception for all tenant center errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code (defaults to the class name).
        details: Extra context such as role_id or offending ids.
        status_code: HTTP status used when the error reaches a route.
    """
    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Grant Store Errors
# ============================================================================

class RoleNotFoundError(TenantCenterException):
    """Raised when a role id does not exist."""
    status_code = 404

    def __init__(self, role_id: str) -> None:
        super().__init__("Role not found", "ROLE_NOT_FOUND", {"role_id": role_id})
        self.role_id = role_id


class GrantStoreError(TenantCenterException):
    """Raised by grant store adapters on transport failure or an error response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message, "GRANT_STORE_ERROR", {"status_code": status_code})
        self.response_status = status_code


# ============================================================================
# Assignment Session Errors
# ============================================================================

class LoadError(TenantCenterException):
    """The permission tree of a role could not be loaded."""

    def __init__(self, role_id: str, message: str = "Failed to load role permissions") -> None:
        super().__init__(message, "LOAD_ERROR", {"role_id": role_id})
        self.role_id = role_id


class SaveError(TenantCenterException):
    """Replacing the grants of a role failed or timed out; edits are kept."""

    def __init__(self, role_id: str, message: str = "Failed to save role permissions") -> None:
        super().__init__(message, "SAVE_ERROR", {"role_id": role_id})
        self.role_id = role_id


class SessionStateError(TenantCenterException):
    """An assignment session operation was called in a state that does not allow it."""
    status_code = 409

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(
            f"Cannot {operation} while session is {state}",
            "INVALID_SESSION_STATE",
            {"operation": operation, "state": state},
        )
        self.operation = operation
        self.state = state
