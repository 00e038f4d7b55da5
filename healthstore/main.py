"""
Health Data Store - FastAPI Application
Exposes the record, consent and research pool operations over HTTP
"""

from fastapi import FastAPI, HTTPException, Depends, Header, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
import base64
import binascii
import logging
import structlog

from pydantic import BaseModel

from .config import get_store_config
from .constants import SERVICE_NAME, SERVICE_VERSION
from .exceptions import (
    HealthStoreError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)
from .host import caller_identity
from .identity import patient_id_from_identity
from .records import PatientDataResponse
from .service import HealthDataStore

settings = get_store_config()

# Configure structured logging
logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level.upper(), logging.INFO))
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Initialize services
health_store: Optional[HealthDataStore] = None


class StoreRecordRequest(BaseModel):
    patient_id: str
    payload: str  # base64
    record_type: str


class UpdateRecordRequest(BaseModel):
    payload: str  # base64
    record_type: str


class GrantAccessRequest(BaseModel):
    entity_id: str


class AnonymizedAccessRequest(BaseModel):
    entity_id: str
    proof: str  # base64


class AddConsentRequest(BaseModel):
    patient_id: str
    entity_id: str
    purpose: str
    proof: str = ""  # base64


class CreatePoolRequest(BaseModel):
    entity_id: str
    title: str
    description: str = ""
    reward_amount: int


class UpdatePoolRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    reward_amount: Optional[int] = None
    status: Optional[str] = None


class SubmissionStatusRequest(BaseModel):
    status: str


def _decode(value: str, field: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise ValidationError(f"{field} must be base64", field=field)


def _encode(value: Optional[bytes]) -> Optional[str]:
    if value is None:
        return None
    return base64.b64encode(value).decode("ascii")


def _report(response: Optional[PatientDataResponse]) -> Optional[Dict[str, Any]]:
    if response is None:
        return None
    return {
        "payload": _encode(response.payload),
        "record_type": response.record_type,
        "timestamp": response.timestamp,
    }


def get_store() -> HealthDataStore:
    if health_store is None:
        raise HTTPException(status_code=503, detail="Health data store not available")
    return health_store


def get_caller(x_caller_identity: Optional[str] = Header(default=None)) -> bytes:
    """Caller identity from the hex X-Caller-Identity header"""
    if x_caller_identity is None:
        return settings.default_identity.encode("utf-8")
    try:
        return bytes.fromhex(x_caller_identity)
    except ValueError:
        raise HTTPException(status_code=400, detail="X-Caller-Identity must be hex")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global health_store

    logger.info("Starting Health Data Store", version=SERVICE_VERSION)

    # Initialize the store only if not already provided (for testing/injection)
    if health_store is None:
        health_store = HealthDataStore(config=settings)
    logger.info("Health data store initialized")

    yield

    logger.info("Shutting down Health Data Store")

# Create FastAPI app
app = FastAPI(
    title="Health Data Store",
    description="Permissioned health records with time-bounded consent and research pools",
    version=SERVICE_VERSION,
    lifespan=lifespan
)


@app.exception_handler(HealthStoreError)
async def store_error_handler(request: Request, exc: HealthStoreError):
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, NotAuthorizedError):
        status_code = 403
    elif isinstance(exc, ValidationError):
        status_code = 400
    else:
        status_code = 500
    logger.warning("Request failed", path=request.url.path, error=exc.error_code)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "components": {
            "health_store": health_store is not None,
        },
    }

# =============================================================================
# PATIENT RECORDS
# =============================================================================

@app.post("/records")
async def store_patient_data(request: StoreRecordRequest,
                             store: HealthDataStore = Depends(get_store),
                             caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.store_patient_data(request.patient_id, _decode(request.payload, "payload"),
                                 request.record_type)
    return {"status": "success"}


@app.put("/records/{patient_id}")
async def update_patient_data(patient_id: str, request: UpdateRecordRequest,
                              store: HealthDataStore = Depends(get_store),
                              caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.update_patient_data(patient_id, _decode(request.payload, "payload"),
                                  request.record_type)
    return {"status": "success"}


@app.delete("/records/{patient_id}")
async def delete_patient_data(patient_id: str,
                              store: HealthDataStore = Depends(get_store),
                              caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.delete_patient_data(patient_id)
    return {"status": "success"}


@app.get("/records/{patient_id}")
async def get_patient_data(patient_id: str, entity_id: str,
                           store: HealthDataStore = Depends(get_store)):
    return {"record": _report(store.get_patient_data(patient_id, entity_id))}


@app.post("/records/{patient_id}/grants")
async def grant_access(patient_id: str, request: GrantAccessRequest,
                       store: HealthDataStore = Depends(get_store),
                       caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.grant_access(patient_id, request.entity_id)
    return {"status": "success"}


@app.delete("/records/{patient_id}/grants/{entity_id}")
async def revoke_access(patient_id: str, entity_id: str,
                        store: HealthDataStore = Depends(get_store),
                        caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.revoke_access(patient_id, entity_id)
    return {"status": "success"}


@app.post("/records/{patient_id}/anonymized")
async def get_anonymized_data(patient_id: str, request: AnonymizedAccessRequest,
                              store: HealthDataStore = Depends(get_store)):
    payload = store.get_anonymized_data(patient_id, request.entity_id,
                                        _decode(request.proof, "proof"))
    return {"payload": _encode(payload)}


@app.get("/records/{patient_id}/export")
async def export_patient_history(patient_id: str,
                                 store: HealthDataStore = Depends(get_store),
                                 caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        return store.export_patient_history(patient_id)


@app.get("/entities/{entity_id}/reports")
async def list_authorized_reports(entity_id: str,
                                  store: HealthDataStore = Depends(get_store)):
    reports = store.list_authorized_reports(entity_id)
    return {"entity_id": entity_id, "reports": [_report(r) for r in reports]}

# =============================================================================
# CONSENT
# =============================================================================

@app.post("/consents")
async def add_consent(request: AddConsentRequest,
                      store: HealthDataStore = Depends(get_store),
                      caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.add_consent(request.patient_id, request.entity_id, request.purpose,
                          _decode(request.proof, "proof"))
    return {"status": "success"}


@app.get("/consents/{patient_id}/{entity_id}")
async def get_consent(patient_id: str, entity_id: str,
                      store: HealthDataStore = Depends(get_store)):
    policy = store.get_consent(patient_id, entity_id)
    if policy is None:
        return {"consent": None}
    consent = policy.model_dump(exclude={"proof"})
    consent["proof"] = _encode(policy.proof)
    return {"consent": consent}


@app.get("/consents/{patient_id}/{entity_id}/data")
async def access_patient_data(patient_id: str, entity_id: str,
                              store: HealthDataStore = Depends(get_store)):
    return {"payload": _encode(store.access_patient_data(patient_id, entity_id))}

# =============================================================================
# RESEARCH POOLS
# =============================================================================

@app.post("/pools")
async def create_research_pool(request: CreatePoolRequest,
                               store: HealthDataStore = Depends(get_store)):
    store.create_research_pool(request.entity_id, request.title, request.description,
                               request.reward_amount)
    return {"status": "success"}


@app.get("/pools")
async def list_research_pools(store: HealthDataStore = Depends(get_store)):
    return {"pools": [pool.model_dump(mode="json") for pool in store.list_research_pools()]}


@app.get("/pools/{entity_id}")
async def get_research_pool(entity_id: str, store: HealthDataStore = Depends(get_store)):
    pool = store.get_research_pool(entity_id)
    return {"pool": pool.model_dump(mode="json") if pool else None}


@app.patch("/pools/{entity_id}")
async def update_research_pool(entity_id: str, request: UpdatePoolRequest,
                               store: HealthDataStore = Depends(get_store),
                               caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.update_research_pool(entity_id, title=request.title,
                                   description=request.description,
                                   reward_amount=request.reward_amount,
                                   status=request.status)
    return {"status": "success"}


@app.delete("/pools/{entity_id}")
async def delete_research_pool(entity_id: str,
                               store: HealthDataStore = Depends(get_store),
                               caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.delete_research_pool(entity_id)
    return {"status": "success"}


@app.post("/pools/{entity_id}/submissions")
async def submit_to_pool(entity_id: str,
                         store: HealthDataStore = Depends(get_store),
                         caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.submit_to_pool(entity_id)
    return {"status": "success", "patient_id": patient_id_from_identity(caller)}


@app.get("/pools/{entity_id}/submissions")
async def get_pool_submissions(entity_id: str,
                               store: HealthDataStore = Depends(get_store),
                               caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        submissions = store.get_pool_submissions(entity_id)
    return {"submissions": [s.model_dump(mode="json") for s in submissions]}


@app.put("/pools/{entity_id}/submissions/{patient_id}")
async def update_submission_status(entity_id: str, patient_id: str,
                                   request: SubmissionStatusRequest,
                                   store: HealthDataStore = Depends(get_store),
                                   caller: bytes = Depends(get_caller)):
    with caller_identity(caller):
        store.update_submission_status(entity_id, patient_id, request.status)
    return {"status": "success"}


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Health Data Store",
        "version": SERVICE_VERSION,
        "status": "operational",
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
