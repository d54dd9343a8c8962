from typing import Any, Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def extra(self) -> Dict[str, Any]:
        """Additional fields merged into the error response body."""
        return {}


class NotFoundError(ServiceError):
    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ForbiddenError(ServiceError):
    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class InvalidStateError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InsufficientBalanceError(InvalidStateError):
    pass


class ConflictError(ServiceError):
    """Department leave conflict. Carries the department and the conflicting approved requests."""

    def __init__(self, message: str, department: str, conflicts: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
        self.department = department
        self.conflicts = conflicts or []

    def extra(self) -> Dict[str, Any]:
        return {"department": self.department, "conflicts": self.conflicts}
