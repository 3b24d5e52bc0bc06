"""Error taxonomy shared by the services.

Services raise these; ``maplist.main`` turns them into JSON responses. They are
never retried automatically.
"""

from typing import Any, Optional


class MaplistError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(MaplistError):
    """Malformed or out-of-range input, rejected before any state mutation.

    ``details`` maps the offending field path to its message.
    """

    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, details: Optional[dict[str, str]] = None) -> None:
        super().__init__(message, details or {})


class PermissionDenied(MaplistError):
    status_code = 403
    code = "permission_denied"

    def __init__(self, permission: str, format_id: Optional[int] = None, message: Optional[str] = None) -> None:
        scope = f"format {format_id}" if format_id is not None else "any format"
        super().__init__(
            message or f"You are missing {permission} on {scope}",
            {"permission": permission, "format_id": format_id},
        )
        self.permission = permission
        self.format_id = format_id


class NotFound(MaplistError):
    status_code = 404
    code = "not_found"


class ConflictingRank(MaplistError):
    status_code = 409
    code = "conflicting_rank"


class Unauthenticated(MaplistError):
    status_code = 401
    code = "unauthenticated"


class UpstreamUnavailable(MaplistError):
    status_code = 502
    code = "upstream_unavailable"
