"""
Global exception handlers for FastAPI.

Maps domain exceptions to HTTP responses, eliminating try/except
boilerplate from routers. Register with register_exception_handlers(app).
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def error_response(status_code: int, detail: str, code: Optional[str] = None) -> JSONResponse:
    """Build a standardized error JSON response."""
    content: dict = {"detail": detail}
    if code:
        content["code"] = code
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain exception handlers on the FastAPI app."""
    from chatguard.models.moderation import (
        AppealsDisabledError,
        BuiltinRuleError,
        InvalidRuleError,
        ReportingDisabledError,
        ReportNotFoundError,
        ReportStoreError,
        RuleNotFoundError,
        SelfReportError,
    )
    from chatguard.stores.base import StoreConflictError, StoreError

    # --- Rule handlers ---

    @app.exception_handler(InvalidRuleError)
    async def _invalid_rule(request: Request, exc: InvalidRuleError) -> JSONResponse:
        return error_response(422, str(exc), "INVALID_RULE")

    @app.exception_handler(RuleNotFoundError)
    async def _rule_not_found(request: Request, exc: RuleNotFoundError) -> JSONResponse:
        return error_response(404, "Rule not found.", "RULE_NOT_FOUND")

    @app.exception_handler(BuiltinRuleError)
    async def _builtin_rule(request: Request, exc: BuiltinRuleError) -> JSONResponse:
        return error_response(
            409,
            f"Rule {exc.rule_id} is built-in. Disable it instead of removing it.",
            "BUILTIN_RULE",
        )

    # --- Report handlers ---

    @app.exception_handler(SelfReportError)
    async def _self_report(request: Request, exc: SelfReportError) -> JSONResponse:
        return error_response(400, "Cannot report yourself.", "SELF_REPORT")

    @app.exception_handler(ReportingDisabledError)
    async def _reporting_disabled(request: Request, exc: ReportingDisabledError) -> JSONResponse:
        return error_response(403, "Reporting is currently disabled.", "REPORTING_DISABLED")

    @app.exception_handler(ReportNotFoundError)
    async def _report_not_found(request: Request, exc: ReportNotFoundError) -> JSONResponse:
        return error_response(404, "Report not found.", "REPORT_NOT_FOUND")

    @app.exception_handler(ReportStoreError)
    async def _report_store(request: Request, exc: ReportStoreError) -> JSONResponse:
        logger.error("Report store error: %s", exc)
        return error_response(503, "Report could not be saved. Please retry.", "REPORT_STORE_ERROR")

    # --- Reputation handlers ---

    @app.exception_handler(AppealsDisabledError)
    async def _appeals_disabled(request: Request, exc: AppealsDisabledError) -> JSONResponse:
        return error_response(403, "Appeal process is currently disabled.", "APPEALS_DISABLED")

    # --- Infrastructure handlers ---

    @app.exception_handler(StoreConflictError)
    async def _store_conflict(request: Request, exc: StoreConflictError) -> JSONResponse:
        logger.warning("Store conflict: %s", exc)
        return error_response(409, "Record is busy. Please retry.", "STORE_CONFLICT")

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store error: %s", exc)
        return error_response(503, "Moderation store unavailable.", "STORE_ERROR")

    # --- Catch-all ---

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return error_response(500, "Internal server error.", "INTERNAL_ERROR")
