from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError

from bookstore.version import VERSION
from bookstore.api import cart, inventory, orders, promotions
from bookstore.core.errors import NotFoundError, ValidationError
from bookstore.core.logging import get_logger
from bookstore.kafka import producer

logger = get_logger(__name__)

instrumentator = Instrumentator()

app = FastAPI(title="Bookstore Order & Inventory Service", version=VERSION)

instrumentator.instrument(app).expose(
    app,
    include_in_schema=False,
    endpoint="/metrics",
    should_gzip=True,
)

def _problem(status: int, title: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"title": title, "status": status, "detail": detail})

@app.exception_handler(ValidationError)
async def validation_error(request: Request, exc: ValidationError):
    return _problem(400, "Bad Request", str(exc))

@app.exception_handler(NotFoundError)
async def not_found(request: Request, exc: NotFoundError):
    return _problem(404, "Not Found", str(exc))

@app.exception_handler(SQLAlchemyError)
async def database_error(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return _problem(500, "Internal Server Error", "A database error occurred while processing your request.")

@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _problem(500, "Internal Server Error", "An unexpected error occurred.")

@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/v1/_info")
def info():
    return {"service": "bookstore", "version": VERSION}

@app.on_event("shutdown")
async def shutdown_event():
    producer.close()

app.include_router(cart.router, tags=["cart"])
app.include_router(orders.router, tags=["orders"])
app.include_router(inventory.router, tags=["inventory"])
app.include_router(promotions.router, tags=["promotions"])
