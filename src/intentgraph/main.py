from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .catalog import CatalogProvider, CatalogUnavailableError, default_catalog
from .config import get_settings
from .logging import configure_logging, get_logger
from .models import (
    CatalogTypeEntry,
    ExtractRequest,
    GenerateRequest,
    HealthResponse,
    RepairRequest,
    SynthesizeRequest,
    SynthesizeResponse,
)
from .workflow.pipeline import IntentGraphEngine

load_dotenv()

settings = get_settings()
configure_logging(json_output=settings.log_json, level=settings.log_level)
logger = get_logger(__name__)

app = FastAPI(
    title="IntentGraph API",
    description="Turn natural-language automation requests into validated workflow graphs",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

catalog_provider = CatalogProvider(default_catalog())
engine = IntentGraphEngine(catalog_provider, settings)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors(include_url=False, include_context=False)},
    )


@app.exception_handler(CatalogUnavailableError)
async def catalog_unavailable_handler(request: Request, exc: CatalogUnavailableError):
    logger.error("catalog_unavailable", path=request.url.path)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.get("/api/health", response_model=HealthResponse)
def health():
    loaded = catalog_provider.loaded
    return HealthResponse(
        status="ok" if loaded else "degraded",
        catalog_loaded=loaded,
        catalog_types=len(catalog_provider.snapshot()) if loaded else 0,
    )


@app.get("/api/catalog/types", response_model=list[CatalogTypeEntry])
def list_catalog_types():
    return [descriptor.to_dict() for descriptor in catalog_provider.snapshot()]


@app.post("/api/intents/extract")
def extract_intent(request: ExtractRequest):
    return engine.extract(request.description).model_dump(mode="json")


@app.post("/api/workflows/synthesize", response_model=SynthesizeResponse)
def synthesize_workflow(request: SynthesizeRequest):
    return SynthesizeResponse(workflow=engine.synthesize(request.intent, request.name))


@app.post("/api/workflows/repair")
def repair_workflow(request: RepairRequest):
    result = engine.validate_and_repair(
        request.workflow,
        auto_fix=request.auto_fix,
        preserve_complexity=request.preserve_complexity,
    )
    return result.to_dict()


@app.post("/api/workflows/generate")
def generate_workflow(request: GenerateRequest):
    return engine.generate(request.description, request.name).to_dict()
