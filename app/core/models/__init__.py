from app.core.models.leave_type import LeaveType
from app.core.models.leave_request import LeaveRequest
from app.core.models.leave_balance import LeaveBalance
from app.core.models.leave_audit_log import LeaveAuditLog

__all__ = [
    "LeaveType",
    "LeaveRequest",
    "LeaveBalance",
    "LeaveAuditLog",
]
