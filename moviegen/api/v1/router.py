"""API v1 router: admin project and credit routes."""

from fastapi import APIRouter

from moviegen.api.v1 import credits, projects

api_router = APIRouter()

api_router.include_router(projects.router)
api_router.include_router(credits.router)
