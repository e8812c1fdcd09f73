"""Aggregate API v1 router — mounts all sub-routers."""
from fastapi import APIRouter
from musiclovely.api.v1 import approvals, callbacks, generation, stems, sweeps

router = APIRouter(prefix="/api/v1")

router.include_router(generation.router, tags=["Generation"])
router.include_router(approvals.router, tags=["Approvals"])
router.include_router(callbacks.router, tags=["Callbacks"])
router.include_router(stems.router, tags=["Stems"])
router.include_router(sweeps.router, tags=["Sweeps"])
