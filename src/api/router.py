"""API router aggregation."""

from fastapi import APIRouter

from src.api.health import router as health_router
from src.api.meetings import router as meetings_router
from src.api.orgs import router as orgs_router
from src.api.protocols import router as protocols_router
from src.api.votes import router as votes_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(meetings_router)
# Vote ledger endpoints, keyed by vote id
api_router.include_router(votes_router)
# Protocol endpoints live under both /meetings and /protocols
api_router.include_router(protocols_router)
# Local roster administration
api_router.include_router(orgs_router)
