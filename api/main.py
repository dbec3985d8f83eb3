"""FastAPI service for dealership stock inventory.

Run with: uvicorn api.main:app --reload --port 8000

Endpoints:
- /api/stock - Stock units, status updates, assignment
- /api/csv-stock - CSV import, preview, batches
- /api/customer-vehicles - Customer vehicle lookup
- /api/health - Health check
"""
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.audit_log import generate_request_id
from api.models import init_schema
from api.routes import csv_stock, customer_vehicles, health, stock
from core.config import get_config
from core.logging_config import set_context, setup_logging
from services.errors import StockError

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique request ID to each request.

    - Uses the client's X-Request-ID or generates one
    - Sets it in the logging context so log lines and audit events carry it
    - Adds X-Request-ID header to responses
    """
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or generate_request_id()

        set_context(request_id=request_id)
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: validate config, configure logging, create tables."""
    config = get_config()
    config.validate()
    setup_logging(config.log_level, config.log_format)
    init_schema()
    logger.info(f"Stock inventory API started (database: {config.storage.database_path})")
    yield


app = FastAPI(
    title="Dealership Stock Inventory",
    description="Stock lifecycle, CSV bulk import and customer assignment",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# Request ID middleware - add first so it runs for all requests
app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.exception_handler(StockError)
async def stock_error_handler(request: Request, exc: StockError):
    """Translate domain errors into {detail} responses."""
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(stock.router)
app.include_router(csv_stock.router)
app.include_router(customer_vehicles.router)


@app.get("/", response_class=HTMLResponse)
async def root():
    """API index page."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
        <title>Dealership Stock Inventory</title>
        <style>
            body { font-family: sans-serif; max-width: 800px; margin: 40px auto; }
            code { background: #f4f4f4; padding: 2px 6px; }
            .section { margin-bottom: 16px; }
        </style>
    </head>
    <body>
        <h1>Dealership Stock Inventory</h1>
        <p><a href="/api/docs">API Documentation</a></p>

        <div class="section">
            <h2>Stock</h2>
            <code>POST /api/stock/</code> - Create manual stock<br>
            <code>GET /api/stock/</code> - List stock<br>
            <code>PATCH /api/stock/{stockId}/status</code> - Update status/location<br>
            <code>POST /api/stock/{stockId}/assign</code> - Assign to customer<br>
            <code>POST /api/stock/{stockId}/unassign</code> - Reverse assignment<br>
        </div>

        <div class="section">
            <h2>CSV Import</h2>
            <code>POST /api/csv-stock/import/preview</code> - Detect columns<br>
            <code>POST /api/csv-stock/import</code> - Import file<br>
            <code>GET /api/csv-stock/batches/list</code> - Import batches<br>
        </div>
    </body>
    </html>
    """
