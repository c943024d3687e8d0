"""
============================================================================
Project Sim Steward v1.0.0
Verdict API - Incident Analysis Endpoint
============================================================================

Reliability Level: STEWARD TIER (Verdict-Critical)
Input Constraints:
    - JSON body matching IncidentReportIn
    - categoryLabel required, overrideFaultA within [0, 100]
Side Effects:
    - Outbound title/narrative calls (bounded by the request deadline)
    - Generates correlation_id for downstream tracing

RESPONSE CONTRACT:
- 200: {verdict, matches}
- 400: {error_code, message, timestamp, details?}, no processing done
- 500: {verdict, matches: []} with confidence "N/A"; the envelope is
  always a structurally valid verdict

FLOW:
1. Receive raw bytes
2. Parse JSON to the IncidentReportIn model
3. Generate correlation_id (UUID4)
4. Run the verdict pipeline
5. Return the verdict envelope

============================================================================
"""

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.observability.metrics import record_verdict_outcome
from app.schemas.incident import IncidentReportIn
from app.schemas.verdict import VerdictResponse, build_error_verdict
from services.precedent_store import PrecedentDatasetError
from services.verdict_service import VerdictService, get_verdict_service

# Configure module logger
logger = logging.getLogger(__name__)

# Create router
router = APIRouter()


# ============================================================================
# ERROR CODES
# ============================================================================

VAL_ERROR_JSON = "STW-VAL-000"
VAL_ERROR_GENERIC = "STW-VAL-005"
SYS_ERROR_INTERNAL = "STW-SYS-500"

_ERROR_CODE_PATTERN = re.compile(r"\[(STW-VAL-\d{3})\]")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def create_error_response(
    error_code: str,
    message: str,
    status_code: int = 400,
    details: Optional[dict] = None
) -> JSONResponse:
    """
    Create standardized error response.

    Reliability Level: STANDARD
    Input Constraints: Error code, message, optional details
    Side Effects: None

    Returns:
        JSONResponse: Formatted error response
    """
    content = {
        "error_code": error_code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
    if details:
        content["details"] = details

    return JSONResponse(status_code=status_code, content=content)


def create_degraded_response(
    message: str,
    correlation_id: str
) -> JSONResponse:
    """
    Create the 500 envelope: a fully shaped verdict with confidence "N/A".

    Reliability Level: STEWARD TIER
    Side Effects: None
    """
    envelope = VerdictResponse(verdict=build_error_verdict(message), matches=[])
    return JSONResponse(
        status_code=500,
        content=envelope.to_response(),
        headers={"X-Correlation-ID": correlation_id},
    )


def summarize_validation_errors(exc: ValidationError) -> List[str]:
    """Flatten pydantic errors into 'field: message' strings."""
    return [
        f"{'.'.join(str(loc) for loc in err['loc']) or 'body'}: {err['msg']}"
        for err in exc.errors()
    ]


def pick_error_code(messages: List[str]) -> str:
    """Use the first STW-VAL code raised by a field validator, if any."""
    for message in messages:
        match = _ERROR_CODE_PATTERN.search(message)
        if match:
            return match.group(1)
    return VAL_ERROR_GENERIC


# ============================================================================
# ANALYZE ENDPOINT
# ============================================================================

@router.post(
    "/analyze",
    summary="Analyze Incident",
    description=(
        "Produces a structured fault verdict for a sim racing incident.\n\n"
        "**Validation:** categoryLabel is required; overrideFaultA must be 0-100\n\n"
        "**Response:** Verdict with fault split, confidence and ranked precedents"
    ),
    response_model=None,
    responses={
        200: {"description": "Verdict produced"},
        400: {"description": "Malformed body or failed validation"},
        500: {"description": "Internal failure, degraded verdict envelope"},
    }
)
async def analyze_incident(
    request: Request,
    service: VerdictService = Depends(get_verdict_service),
) -> JSONResponse:
    """
    Analyze an incident report and return a verdict envelope.

    Reliability Level: STEWARD TIER (Verdict-Critical)
    Input Constraints: JSON body matching IncidentReportIn
    Side Effects: Outbound calls, metrics, logging
    """
    correlation_id = str(uuid.uuid4())

    # ========================================================================
    # STEP 1: Parse and validate JSON payload
    # ========================================================================
    raw_body = await request.body()

    try:
        payload_dict = json.loads(raw_body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        record_verdict_outcome("invalid", correlation_id)
        return create_error_response(
            error_code=VAL_ERROR_JSON,
            message=f"Invalid JSON in request body: {str(e)[:100]}",
            status_code=400
        )

    if not isinstance(payload_dict, dict):
        record_verdict_outcome("invalid", correlation_id)
        return create_error_response(
            error_code=VAL_ERROR_JSON,
            message="Request body must be a JSON object",
            status_code=400
        )

    try:
        report = IncidentReportIn.model_validate(payload_dict)
    except ValidationError as e:
        messages = summarize_validation_errors(e)
        error_code = pick_error_code(messages)
        logger.info(
            f"[{error_code}] Incident report rejected | "
            f"errors={messages} | "
            f"correlation_id={correlation_id}"
        )
        record_verdict_outcome("invalid", correlation_id)
        return create_error_response(
            error_code=error_code,
            message=messages[0] if messages else "Request validation failed",
            status_code=400,
            details={"validation_errors": messages}
        )

    # ========================================================================
    # STEP 2: Run the verdict pipeline
    # ========================================================================
    try:
        outcome = await service.analyze(report, correlation_id)
    except PrecedentDatasetError as e:
        record_verdict_outcome("error", correlation_id)
        return create_degraded_response(e.message, correlation_id)
    except Exception as e:
        logger.error(
            f"[{SYS_ERROR_INTERNAL}] Verdict pipeline failed | "
            f"error={type(e).__name__}: {str(e)[:200]} | "
            f"correlation_id={correlation_id}",
            exc_info=True
        )
        record_verdict_outcome("error", correlation_id)
        return create_degraded_response(
            f"Unexpected internal failure ({type(e).__name__})", correlation_id
        )

    record_verdict_outcome("ok", correlation_id)

    return JSONResponse(
        status_code=200,
        content=outcome.response.to_response(),
        headers={"X-Correlation-ID": correlation_id},
    )
