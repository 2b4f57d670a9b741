import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError

from .api.endpoints import router as api_router
from .config import config
from .db import init_db, SessionLocal
from .persistence import AssignmentConflict, InvalidReference, RecordNotFound, get_bootstrap
from .stats import dashboard_summary

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Driver Safety Bonus",
    description="Fleet safety administration: drivers, trucks, safety events and scorecards",
    version="1.0.0"
)

if config.enable_cors:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

# Setup templates
templates = Jinja2Templates(directory=os.path.join(os.path.dirname(__file__), "templates"))

# Include API routes
app.include_router(api_router, prefix="/api")

@app.exception_handler(RecordNotFound)
async def record_not_found_handler(request: Request, exc: RecordNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})

@app.exception_handler(InvalidReference)
async def invalid_reference_handler(request: Request, exc: InvalidReference):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

@app.exception_handler(AssignmentConflict)
async def assignment_conflict_handler(request: Request, exc: AssignmentConflict):
    return JSONResponse(status_code=409, content={"detail": str(exc)})

@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": f"Database error: {exc}"})

@app.on_event("startup")
async def startup():
    """Initialize database on startup."""
    init_db()

@app.get("/")
async def root():
    """Root endpoint - redirect to dashboard."""
    return {"message": "Driver Safety Bonus", "dashboard": "/dashboard", "api": "/api"}

@app.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request):
    """Serve the dashboard page."""
    with SessionLocal() as db:
        snapshot = get_bootstrap(db)
        summary = dashboard_summary(
            snapshot["drivers"], snapshot["trucks"],
            snapshot["safety_events"], snapshot["safety_categories"]
        )
    return templates.TemplateResponse(request, "dashboard.html", {"summary": summary})

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("safety_bonus.main:app", host="0.0.0.0", port=8000, reload=config.debug)
