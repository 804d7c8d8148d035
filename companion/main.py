"""FastAPI application setup for the personal data companion."""

from fastapi import FastAPI

from .api import router as api_router

app = FastAPI(title="Personal Data Companion")

# API routes
app.include_router(api_router, prefix="/v1")
