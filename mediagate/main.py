import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env from mediagate/.env
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from mediagate.core.config import settings, validate_config
from mediagate.core.logging import configure_logging
from mediagate.core.middleware.request_id import RequestIdMiddleware
from mediagate.core.validation import validate_env
from mediagate.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from mediagate.api import access, health, purchases, reports

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("mediagate")
    logger.info("Starting mediagate...")
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logging.getLogger("mediagate").info("Stopping mediagate...")


app = FastAPI(title="mediagate", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# CORS (adjust origins in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.root_router)
app.include_router(access.router)
app.include_router(purchases.router)
app.include_router(reports.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("mediagate.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
