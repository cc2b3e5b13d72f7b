"""
Receptor Engine - FastAPI Application

Backend for a receiving office (receptor judicial) handling enforcement cases.

Pipeline:
- Case + sub-task metadata -> Variable Resolver -> variable map
- Template + variable map  -> Template Engine   -> stamp text
- Stamp text + header      -> Layout Engine     -> paginated PDF
- PDF                      -> Document Assembler -> GeneratedDocument
"""
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import cases_router, documents_router, fees_router, subtasks_router
from .database import init_db

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Receptor Engine",
    description="""
    Receptor Engine - Enforcement Case Documents

    ## Pipeline
    1. **Variable Resolver**: case, parties, court, lawyer, bank, sub-task metadata -> variables
    2. **Template Engine**: `$token` substitution, closed set, single pass
    3. **Layout Engine**: wrapping, pagination, header block, signature/seal images
    4. **Document Assembler**: stamps and receipts persisted as PDF

    ## Key Principles
    - Case status is derived from sub-task statuses, never edited
    - Sub-task metadata is merged key-wise, never replaced
    - Fee lookups name one tier; bank-wide fallback is opt-in
    - Documents are stored only once the whole PDF has been built
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cases_router)
app.include_router(subtasks_router)
app.include_router(documents_router)
app.include_router(fees_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Receptor Engine",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
