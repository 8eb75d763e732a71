# hims_billing/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hims_billing.core.config import settings
from hims_billing.api.router import api_router
from hims_billing.api.exception_handlers import register_exception_handlers

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.PROJECT_NAME,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


# Health
@app.get("/")
def root():
    return {"message": "HIMS discharge billing API running", "version": "v1"}
