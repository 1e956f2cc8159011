"""
FastAPI application for the TEIF Invoice Service.

Provides REST API endpoints for:
- Health check
- Template field listing
- Pre-filled xlsx template download
- Validation of pasted template data
- TEIF XML generation from pasted template data
"""

from fastapi import Depends, FastAPI, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .companies import CompanyNotFoundError, CompanyStore, JsonCompanyStore
from .config import API_HOST, API_PORT, CollaboratorError, logger
from .lookups import JsonLookupSource, LookupMaps, LookupSource, load_lookup_maps
from .schemas import GenerationErrorResponse, PastedDataRequest, SenderCompany, ValidationResponse
from .tables import HEADER_FIELDS, LINE_ITEMS_SCHEMA, FieldClassification, header_paths_by_classification
from .template import XLSX_MEDIA_TYPE
from .validator import (
    GENERATION_FAILURE_MESSAGE,
    build_template_for,
    generate_invoice_xml,
    validate_pasted_data,
)


# ============================================================================
# FastAPI App Configuration
# ============================================================================

app = FastAPI(
    title="TEIF Invoice Service API",
    description="""
    Tunisian electronic invoice (TEIF) generation service API.

    Users download a spreadsheet template pre-filled with their company data,
    fill in receiver and line-item data, paste both tables back and receive a
    TEIF 1.8.8 XML invoice.

    ## Features

    - **Template**: Download the pre-filled xlsx template of a company
    - **Validate**: Check pasted template data and list every error
    - **Generate**: Produce the TEIF XML invoice from pasted template data
    """,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Response Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


# ============================================================================
# Collaborators
# ============================================================================

def get_company_store() -> CompanyStore:
    """Company records; overridden in tests."""
    return JsonCompanyStore()


def get_lookup_source() -> LookupSource:
    """Reference data; overridden in tests."""
    return JsonLookupSource()


def _missing_input_response(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=GenerationErrorResponse(message=message, errors=[message]).model_dump(),
    )


async def _resolve_collaborators(
    company_id: str,
    owner_id: str,
    store: CompanyStore,
    source: LookupSource,
) -> tuple[SenderCompany, LookupMaps]:
    company = store.get_company(company_id, owner_id)
    maps = await load_lookup_maps(source)
    return company, maps


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns the service status and version information.
    """
    from . import __version__
    return HealthResponse(status="ok", version=__version__)


@app.get("/fields", tags=["System"])
async def list_fields():
    """
    List the template fields, grouped by how they are filled.

    User-input fields are validated, pre-filled fields come from the company
    record or TEIF constants, calculated fields are derived from line items.
    """
    fields_by_classification = {}
    for classification in FieldClassification:
        fields_by_classification[classification.value] = [
            {"xml_path": path.value, "description": HEADER_FIELDS[path].description}
            for path in header_paths_by_classification(classification)
        ]

    return {
        "total_fields": len(HEADER_FIELDS),
        "header_fields": fields_by_classification,
        "line_item_columns": [
            {"name": column.display_name, "classification": column.classification.value}
            for column in LINE_ITEMS_SCHEMA.columns
        ],
    }


@app.get("/template", tags=["Template"], summary="Download the invoice template")
async def download_template(
    company_id: str = Query(..., description="Sender company record identifier"),
    x_owner_id: str = Header(..., description="Authenticated user identifier"),
    store: CompanyStore = Depends(get_company_store),
    source: LookupSource = Depends(get_lookup_source),
) -> Response:
    """
    Download the xlsx template pre-filled with the company's data.

    The header row of each sheet is the exact text the validate and generate
    endpoints look for in pasted data.
    """
    company, maps = await _resolve_collaborators(company_id, x_owner_id, store, source)
    template = build_template_for(company, maps)

    return Response(
        content=template.content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{template.filename}"'},
    )


@app.post(
    "/validate",
    response_model=ValidationResponse,
    tags=["Invoices"],
    summary="Validate pasted template data",
)
async def validate(
    request: PastedDataRequest,
    x_owner_id: str = Header(..., description="Authenticated user identifier"),
    store: CompanyStore = Depends(get_company_store),
    source: LookupSource = Depends(get_lookup_source),
):
    """
    Validate both pasted tables without generating XML.

    **Checks Applied:**
    - Both table header rows present
    - Header fields against their format and reference-data rules
    - Receiver identifier format, jointly required header groups
    - Every line item, and at least one valid line
    """
    if not request.company_id or not request.pasted_data:
        return _missing_input_response("L'ID de l'entreprise et les données collées sont requis.")

    company, maps = await _resolve_collaborators(request.company_id, x_owner_id, store, source)
    result = validate_pasted_data(request.pasted_data, company, maps)

    if not result.success:
        return JSONResponse(status_code=400, content=result.model_dump())
    return result


@app.post(
    "/generate",
    tags=["Invoices"],
    summary="Generate the TEIF XML invoice",
    responses={400: {"model": GenerationErrorResponse}},
)
async def generate(
    request: PastedDataRequest,
    x_owner_id: str = Header(..., description="Authenticated user identifier"),
    store: CompanyStore = Depends(get_company_store),
    source: LookupSource = Depends(get_lookup_source),
) -> Response:
    """
    Generate the TEIF XML invoice from pasted template data.

    Returns the XML as an attachment, or every validation error when the
    invoice cannot be produced.
    """
    if not request.company_id or not request.pasted_data:
        return _missing_input_response("L'ID de l'entreprise et les données collées sont requis.")

    company, maps = await _resolve_collaborators(request.company_id, x_owner_id, store, source)
    result = generate_invoice_xml(request.pasted_data, company, maps)

    if not result.success:
        return JSONResponse(
            status_code=400,
            content=GenerationErrorResponse(
                message=GENERATION_FAILURE_MESSAGE, errors=result.errors
            ).model_dump(),
        )

    return Response(
        content=result.xml,
        media_type="application/xml",
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


# ============================================================================
# Error Handlers
# ============================================================================

@app.exception_handler(CompanyNotFoundError)
async def company_not_found_handler(request, exc):
    """Unknown company, or a company owned by someone else."""
    logger.warning(f"Company lookup refused: {exc}")
    return JSONResponse(
        status_code=404,
        content={"detail": "Entreprise non trouvée ou non autorisée."},
    )


@app.exception_handler(CollaboratorError)
async def collaborator_exception_handler(request, exc):
    """Company records or reference data unavailable."""
    logger.error(f"Collaborator failure: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": exc.user_message, "category": exc.category.value},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# ============================================================================
# Startup/Shutdown Events
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Log startup information."""
    logger.info(f"TEIF Invoice Service API starting on {API_HOST}:{API_PORT}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("TEIF Invoice Service API shutting down")


# ============================================================================
# Main Entry Point
# ============================================================================

def run_server():
    """Run the API server using uvicorn."""
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    run_server()
