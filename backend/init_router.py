# backend/init_router.py

from fastapi import APIRouter

from base.controllers.sites import sites

router = APIRouter()

sites(router)
