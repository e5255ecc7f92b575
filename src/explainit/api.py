# src/explainit/api.py
from typing import Any, Dict, Optional
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from explainit import __version__, config
from explainit.exceptions import ExplainItError, StorageError, ValidationError
from explainit.logging_config import get_logger, with_error_handling, with_performance_logging
from explainit.providers import DEFAULT_PROVIDER_ID, PROVIDERS

logger = get_logger("api")


# Pydantic models
class ExplainRequest(BaseModel):
    text: str = Field(..., description="Selected text to explain")
    tone: Optional[str] = Field(None, description="simple, kid or expert")
    language: Optional[str] = Field(None, description="en or ru")


class CredentialTestRequest(BaseModel):
    provider: str = Field(..., description="Provider id")
    api_key: str = Field("", description="Key to probe; empty reports not-set")


class PreferencesRequest(BaseModel):
    language: Optional[str] = Field(None, description="Explanation language; omitted keeps the saved one")
    tone: Optional[str] = Field(None, description="Explanation tone; omitted keeps the saved one")
    provider: str = Field(..., min_length=1, description="Active provider id")
    api_keys: Optional[Dict[str, Optional[str]]] = Field(None, description="Keys to save per provider")


class ProviderSwitchRequest(BaseModel):
    provider: str = Field(..., min_length=1, description="Provider id to activate")


# Create FastAPI app
app = FastAPI(
    title="ExplainIt API",
    description="Explain selected text with the user's own LLM provider key",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global state
_service = None


def get_service():
    """Return the process-wide service, building it on first use."""
    global _service
    if _service is None:
        _service = config.get_service()
    return _service


def set_service(service) -> None:
    """Replace the process-wide service (used by tests and embedding apps)."""
    global _service
    _service = service


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": __version__
    }


@app.get("/api/v1/providers")
async def list_providers():
    """Registered providers and the metadata a settings form needs."""
    return {
        "providers": [
            {
                "id": p.id,
                "name": p.name,
                "label": p.label,
                "model": p.model_id,
                "keyUrl": p.key_url,
                "keyPlaceholder": p.key_placeholder,
            }
            for p in PROVIDERS.values()
        ],
        "default": DEFAULT_PROVIDER_ID
    }


@app.post("/api/v1/explain", response_model=Dict[str, Any])
@with_error_handling("api")
@with_performance_logging("api")
async def explain(request: ExplainRequest):
    """Explain the given text with the active provider."""
    result = await get_service().request_explanation(
        request.text,
        tone=request.tone,
        language=request.language
    )
    if result.error_code == "VALIDATION_ERROR":
        return JSONResponse(status_code=400, content=result.to_dict())
    return result.to_dict()


@app.post("/api/v1/credentials/test", response_model=Dict[str, Any])
@with_error_handling("api")
async def test_credential(request: CredentialTestRequest):
    """Probe a provider with a key without saving it."""
    return await get_service().test_credential(request.provider, request.api_key)


@app.get("/api/v1/preferences", response_model=Dict[str, Any])
@with_error_handling("api")
async def get_preferences():
    """Current preferences; keys are reported masked."""
    return await get_service().current_preferences()


@app.put("/api/v1/preferences", response_model=Dict[str, Any])
@with_error_handling("api")
async def save_preferences(request: PreferencesRequest):
    """Validate and persist preferences."""
    # Fields left out of the request keep their saved values
    draft: Dict[str, Any] = {"provider": request.provider}
    if request.language is not None:
        draft["language"] = request.language
    if request.tone is not None:
        draft["tone"] = request.tone
    if request.api_keys is not None:
        draft["apiKeys"] = request.api_keys
    return await get_service().save_preferences(draft)


@app.post("/api/v1/preferences/provider", response_model=Dict[str, Any])
@with_error_handling("api")
async def switch_provider(request: ProviderSwitchRequest):
    """Make another provider active for this session."""
    return await get_service().switch_provider(request.provider)


# Error handlers
@app.exception_handler(ValidationError)
async def validation_exception_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation Error",
            "message": exc.message,
            "field": exc.field,
            "type": "validation_error"
        }
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request, exc):
    return JSONResponse(
        status_code=503,
        content={
            "error": "Storage Error",
            "message": exc.message,
            "type": "storage_error"
        }
    )


@app.exception_handler(ExplainItError)
async def explainit_exception_handler(request, exc):
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": exc.message,
            "type": exc.error_code.lower()
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.error("Unhandled exception", error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
            "type": "internal_error"
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
