"""Audit log for leave lifecycle: CREATED, UPDATED, APPROVED, REJECTED, DELETED."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db.session import Base


class LeaveAuditLog(Base):
    __tablename__ = "leave_audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Plain column, not a foreign key: entries outlive deleted requests.
    leave_request_id = Column(Integer, nullable=False, index=True)
    action = Column(String(50), nullable=False)
    performed_by = Column(Integer, nullable=True)
    performed_by_role = Column(String(20), nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
