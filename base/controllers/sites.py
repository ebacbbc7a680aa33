# base/controllers/sites.py

import logging
from typing import Optional
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi import APIRouter, Depends, HTTPException, Request, BackgroundTasks

from base.services.site_service import SiteService
from sites.errors import PersistenceError, SiteNotFoundError, ValidationError

logger = logging.getLogger("umkm.sites.controllers")


def get_service(request: Request) -> SiteService:
    service = getattr(request.app.state, "site_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="service is not ready")
    return service


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="JSON object expected")
    return body


def _validation_response(e: ValidationError) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": "Validation Error", "fieldErrors": e.field_errors},
        status_code=400,
    )


def _unavailable_response(e: PersistenceError) -> JSONResponse:
    logger.error("Persistence failure: %s", e)
    return JSONResponse({"success": False, "error": "Storage temporarily unavailable"}, status_code=503)


def sites(sites_router: APIRouter):
    @sites_router.post("/api/submit-business", response_class=JSONResponse)
    async def submit_business(
        request: Request,
        background_tasks: BackgroundTasks,
        service: SiteService = Depends(get_service),
    ):
        body = await _json_body(request)
        try:
            res = await service.submit(body, background_tasks=background_tasks)
        except ValidationError as e:
            return _validation_response(e)
        except PersistenceError as e:
            return _unavailable_response(e)

        logger.info("HTTP POST /api/submit-business -> %s (%s)", res["businessId"], res["subdomain"])
        return JSONResponse(jsonable_encoder(res))


    @sites_router.put("/api/sites/{business_id}", response_class=JSONResponse)
    async def update_business(
        business_id: str,
        request: Request,
        background_tasks: BackgroundTasks,
        service: SiteService = Depends(get_service),
    ):
        body = await _json_body(request)
        try:
            res = await service.resubmit(business_id, body, background_tasks=background_tasks)
        except ValidationError as e:
            return _validation_response(e)
        except SiteNotFoundError:
            raise HTTPException(status_code=404, detail="Business not found")
        except PersistenceError as e:
            return _unavailable_response(e)
        return JSONResponse(jsonable_encoder(res))


    @sites_router.get("/api/status", response_class=JSONResponse)
    async def get_status(
        businessId: Optional[str] = None,
        subdomain: Optional[str] = None,
        service: SiteService = Depends(get_service),
    ):
        if not businessId and not subdomain:
            raise HTTPException(status_code=400, detail="businessId or subdomain is required")
        try:
            view = await service.get_status(business_id=businessId, subdomain=subdomain)
        except SiteNotFoundError:
            raise HTTPException(status_code=404, detail="Business not found")
        return JSONResponse(jsonable_encoder(view))


    @sites_router.post("/api/sites/{business_id}/modify", response_class=JSONResponse)
    async def modify_site(
        business_id: str,
        request: Request,
        service: SiteService = Depends(get_service),
    ):
        body = await _json_body(request)
        change = body.get("request") or body.get("modificationRequest") or ""
        if not isinstance(change, str) or not change.strip():
            raise HTTPException(status_code=400, detail="modification request is required")
        try:
            res = await service.modify(business_id, change)
        except SiteNotFoundError:
            raise HTTPException(status_code=404, detail="Website not found")
        except PersistenceError as e:
            return _unavailable_response(e)
        return JSONResponse(jsonable_encoder(res))


    @sites_router.get("/api/sites/{business_id}/preview", response_class=HTMLResponse)
    async def preview_site(business_id: str, service: SiteService = Depends(get_service)):
        try:
            artifact = await service.get_artifact(business_id)
        except SiteNotFoundError:
            raise HTTPException(status_code=404, detail="Website not found")
        return HTMLResponse(artifact.html)


    @sites_router.get("/api/themes", response_class=JSONResponse)
    async def list_themes(service: SiteService = Depends(get_service)):
        return JSONResponse({"themes": service.list_themes()})


    @sites_router.get("/api/modifications", response_class=JSONResponse)
    async def list_modifications(service: SiteService = Depends(get_service)):
        return JSONResponse({"suggestions": service.suggestions()})
