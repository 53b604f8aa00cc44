"""
Moderation router.

Send/report path (internal callers):
- POST /check: Check an outgoing message before it is delivered
- POST /reports: Submit a user report
- GET /users/{user_id}/status: Reputation record for a user

Admin (X-Admin-Key):
- GET /reports, GET /reports/stats, GET /reports/{report_id}: Report review
- POST /users/{user_id}/lift: Clear mute/ban after an upheld appeal
- GET /config, PATCH /config: Feature toggles
- GET /rules, POST /rules, PATCH /rules/{rule_id}, DELETE /rules/{rule_id}
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from chatguard.core.auth import require_admin
from chatguard.models.moderation import (
    CheckMessageRequest,
    MessageContext,
    ModerationConfig,
    ModerationReport,
    ModerationResult,
    ModerationRule,
    ReportCreatedResponse,
    ReportsResponse,
    ReportStatsResponse,
    ReportStatus,
    RuleCreate,
    RuleCreatedResponse,
    RulesResponse,
    RuleUpdate,
    SubmitReportRequest,
    UserModerationStatus,
)
from chatguard.services.moderation_service import ModerationService

logger = logging.getLogger(__name__)
router = APIRouter()


def get_moderation_service(request: Request) -> ModerationService:
    return request.app.state.moderation_service


@router.post("/check", response_model=ModerationResult)
async def check_message(
    body: CheckMessageRequest,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ModerationResult:
    """Check an outgoing message. Always answers; failures come back as allow."""
    context = None
    if body.conversation_id or body.recipient_id:
        context = MessageContext(
            conversation_id=body.conversation_id, recipient_id=body.recipient_id
        )
    return moderation_service.moderate_message(body.text, body.sender_id, context)


@router.post("/reports", response_model=ReportCreatedResponse)
async def submit_report(
    report_request: SubmitReportRequest,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ReportCreatedResponse:
    """Submit a user report against a message."""
    report_id = moderation_service.report_message(
        message_id=report_request.message_id,
        reporter_id=report_request.reporter_id,
        reported_user_id=report_request.reported_user_id,
        reason=report_request.reason,
        category=report_request.category,
        description=report_request.description,
    )
    return ReportCreatedResponse(report_id=report_id)


@router.get("/reports", response_model=ReportsResponse, dependencies=[Depends(require_admin)])
async def list_reports(
    status: Optional[ReportStatus] = None,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ReportsResponse:
    """List reports, optionally filtered by status."""
    reports = moderation_service.get_reports(status)
    return ReportsResponse(reports=reports, total=len(reports))


@router.get(
    "/reports/stats", response_model=ReportStatsResponse, dependencies=[Depends(require_admin)]
)
async def report_stats(
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ReportStatsResponse:
    """Report counts per status and per category."""
    return moderation_service.get_report_stats()


@router.get(
    "/reports/{report_id}", response_model=ModerationReport, dependencies=[Depends(require_admin)]
)
async def get_report(
    report_id: str,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ModerationReport:
    """Single report by id."""
    return moderation_service.get_report(report_id)


@router.get("/users/{user_id}/status", response_model=UserModerationStatus)
async def get_user_status(
    user_id: str,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> UserModerationStatus:
    """Reputation record for a user (default record if none exists yet)."""
    return moderation_service.get_user_status(user_id)


@router.post(
    "/users/{user_id}/lift",
    response_model=UserModerationStatus,
    dependencies=[Depends(require_admin)],
)
async def lift_restrictions(
    user_id: str,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> UserModerationStatus:
    """Clear a user's mute and ban."""
    return moderation_service.lift_restrictions(user_id)


@router.get("/config", response_model=ModerationConfig, dependencies=[Depends(require_admin)])
async def get_config(
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ModerationConfig:
    """Current moderation toggles."""
    return moderation_service.get_config()


@router.patch("/config", response_model=ModerationConfig, dependencies=[Depends(require_admin)])
async def update_config(
    changes: dict[str, Any] = Body(...),
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ModerationConfig:
    """Apply a partial toggle update. Unknown keys are rejected."""
    if not moderation_service.update_config(**changes):
        raise HTTPException(status_code=422, detail="Invalid moderation config update")
    return moderation_service.get_config()


@router.get("/rules", response_model=RulesResponse, dependencies=[Depends(require_admin)])
async def list_rules(
    include_disabled: bool = True,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> RulesResponse:
    """List built-in and custom rules."""
    rules = moderation_service.list_rules(include_disabled)
    return RulesResponse(rules=rules, total=len(rules))


@router.post("/rules", response_model=RuleCreatedResponse, dependencies=[Depends(require_admin)])
async def add_rule(
    rule: RuleCreate,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> RuleCreatedResponse:
    """Add a custom rule."""
    return RuleCreatedResponse(rule_id=moderation_service.add_custom_rule(rule))


@router.patch(
    "/rules/{rule_id}", response_model=ModerationRule, dependencies=[Depends(require_admin)]
)
async def update_rule(
    rule_id: str,
    body: RuleUpdate,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ModerationRule:
    """Enable or disable a rule."""
    return moderation_service.set_rule_enabled(rule_id, body.enabled)


@router.delete("/rules/{rule_id}", dependencies=[Depends(require_admin)])
async def remove_rule(
    rule_id: str,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> dict:
    """Remove a custom rule."""
    if not moderation_service.remove_custom_rule(rule_id):
        raise HTTPException(status_code=404, detail="Rule not found")
    return {"removed": True, "rule_id": rule_id}
