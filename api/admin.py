"""Admin dashboard API. Mounted under /admin, so every route is gated."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from auth.security_logger import SecurityLogger, SecurityEvent
from core.audit import AuditRecorder
from core.services.stats_service import StatsService


def create_admin_router(
    stats_service: StatsService,
    audit: AuditRecorder,
    security_logger: SecurityLogger,
) -> APIRouter:
    router = APIRouter(tags=["admin"])

    @router.get("/api/stats")
    async def get_stats(request: Request):
        stats = await stats_service.get_stats()
        return success_response(stats.model_dump(mode="json")).model_dump(mode="json")

    @router.get("/api/audit-logs")
    async def list_audit_logs(
        request: Request,
        resource_type: str | None = Query(None),
        user_id: UUID | None = Query(None),
        limit: int = Query(100, ge=1, le=500),
    ):
        entries = audit.list_recent(limit=limit, resource_type=resource_type, user_id=user_id)
        return success_response(entries).model_dump(mode="json")

    @router.get("/api/audit-logs/{resource_type}/{resource_id}")
    async def resource_history(request: Request, resource_type: str, resource_id: str):
        entries = audit.get_resource_history(resource_type, resource_id)
        return success_response(entries).model_dump(mode="json")

    @router.get("/api/security-events")
    async def list_security_events(
        request: Request,
        email: str | None = Query(None),
        event_type: str | None = Query(None),
        limit: int = Query(100, ge=1, le=500),
    ):
        event = None
        if event_type:
            try:
                event = SecurityEvent(event_type)
            except ValueError:
                valid = ", ".join(e.value for e in SecurityEvent)
                raise ValueError(f"Unknown event_type '{event_type}'. Valid types: {valid}")

        events = security_logger.get_recent_events(email=email, event_type=event, limit=limit)
        return success_response(events).model_dump(mode="json")

    return router
