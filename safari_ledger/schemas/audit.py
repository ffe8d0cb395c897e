"""Audit log schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from safari_ledger.schemas.common import CamelModel, PageMeta


class AuditLogResponse(CamelModel):
    id: UUID
    user_id: UUID | None
    action: str
    resource_type: str
    resource_id: UUID | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    ip_address: str | None
    created_at: datetime


class AuditLogListResponse(CamelModel):
    logs: list[AuditLogResponse]
    meta: PageMeta
