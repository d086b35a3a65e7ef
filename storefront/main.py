import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.database import engine, create_tables
from storefront.presentation.api import router

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    await create_tables(engine)
    logger.info("Tables ready")

    yield

    await engine.dispose()
    logger.info("Application stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront Orders",
        description="Cart, inventory and order placement service",
        version="1.0.0",
        lifespan=lifespan
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": message, "errors": jsonable_errors(errors)}
        )

    app.include_router(router, prefix="/api")

    @app.get("/")
    async def root():
        return {"message": "Storefront order service is running"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


def jsonable_errors(errors) -> list:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors]


app = create_app()
