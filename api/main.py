"""
Enquiry Management API - Main Application.

FastAPI application with CORS enabled for frontend communication.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from domain.errors import EnquiryError
from services.side_effects import PostCommitHooks
from services.sla_settings import SlaSettings

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

# HTTP status per error kind; anything unlisted is a 400.
ERROR_STATUS = {
    "validation_error": 400,
    "import_aborted": 400,
    "unknown_field": 400,
    "not_found": 404,
    "not_authorized": 403,
    "not_authenticated": 401,
}

# Create FastAPI application
app = FastAPI(
    title="Enquiry Management API",
    description="REST API for capturing, qualifying and assigning customer enquiries",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.sla_settings = SlaSettings()

# Configure CORS - Allow all origins for development
# TODO: Restrict origins once the frontend host is fixed
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_body(kind: str, message: str, details=None) -> dict:
    return {"success": False, "error": kind, "message": message, "details": list(details or [])}


# Audit action per HTTP method for rejected mutations.
REJECTED_ACTION = {"POST": "create", "PUT": "update", "PATCH": "update", "DELETE": "delete"}


def audit_rejection(request: Request, kind: str, status_code: int) -> None:
    """
    Record a failed mutation on the audit trail.

    Only routes declaring the `audited` dependency leave an audit trail on
    `request.state`; everything else is skipped.
    """
    audit = getattr(request.state, "audit", None)
    if audit is None:
        return
    params = request.path_params
    entity_id = params.get("enquiry_id") or params.get("rule_id") or "unknown"
    hooks = PostCommitHooks()
    hooks.add(
        "audit_rejection",
        audit.record,
        getattr(request.state, "actor_id", None),
        request.state.audit_entity_type,
        str(entity_id),
        REJECTED_ACTION.get(request.method, request.method.lower()),
        None,
        {
            "status": "failure",
            "status_code": status_code,
            "severity": "high" if status_code >= 500 else "medium",
            "error": kind,
            "description": f"{request.method} {request.url.path}",
        },
    )
    hooks.run()


@app.exception_handler(EnquiryError)
async def enquiry_error_handler(request: Request, exc: EnquiryError):
    status_code = ERROR_STATUS.get(exc.kind, 400)
    logger.info(
        "Request rejected",
        extra={"path": request.url.path, "error_kind": exc.kind, "status_code": status_code},
    )
    audit_rejection(request, exc.kind, status_code)
    return JSONResponse(status_code=status_code, content=error_body(exc.kind, exc.message, exc.details))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    audit_rejection(request, "validation_error", 400)
    return JSONResponse(
        status_code=400,
        content=error_body("validation_error", ", ".join(messages) or "Invalid input", messages),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})
    audit_rejection(request, "internal_error", 500)
    return JSONResponse(status_code=500, content=error_body("internal_error", "Server Error"))


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "enquiry-management-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Enquiry Management API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import assignment_logs, assignment_rules, enquiries, sla

app.include_router(enquiries.router, prefix="/api/v1", tags=["Enquiries"])
app.include_router(assignment_rules.router, prefix="/api/v1", tags=["Assignment Rules"])
app.include_router(assignment_logs.router, prefix="/api/v1", tags=["Assignment Logs"])
app.include_router(sla.router, prefix="/api/v1", tags=["SLA"])
