"""
Templates API Routes
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import BaseModel

from memeplate.config.constants import DEFAULT_PAGE_LIMIT
from memeplate.core.validator import AssetUpload
from memeplate.api.dependencies import get_coordinator, get_query_service
from memeplate.services.lifecycle import AssetLifecycleCoordinator
from memeplate.services.observability import logger
from memeplate.services.query import QueryService


# Request Models


class ZonesUpdateRequest(BaseModel):
    """Replacement zone list"""

    zones: List[Any]


async def _read_upload(image: Optional[UploadFile]) -> Optional[AssetUpload]:
    """Read a multipart file into raw bytes + declared content type"""
    if image is None or not image.filename:
        return None
    data = await image.read()
    return AssetUpload(data=data, content_type=image.content_type or "", filename=image.filename)


# Router
router = APIRouter()


@router.get("/templates")
async def list_templates(
    category: Optional[str] = Query(None, description="Exact category match"),
    search: Optional[str] = Query(None, description="Case-insensitive name substring"),
    limit: int = Query(DEFAULT_PAGE_LIMIT, description="Page size"),
    skip: int = Query(0, description="Templates to skip"),
    query: QueryService = Depends(get_query_service),
):
    """List templates newest first"""
    page = query.list_templates(category=category, search=search, limit=limit, skip=skip)
    return {
        "success": True,
        "data": [template.to_dict() for template in page.items],
        "total": page.total,
        "page": page.page,
        "totalPages": page.total_pages,
    }


# Fixed paths must be registered before /templates/{template_id}


@router.get("/templates/random")
async def random_template(query: QueryService = Depends(get_query_service)):
    """Uniformly random template (data is null when there are none)"""
    template = query.random_template()
    return {"success": True, "data": template.to_dict() if template else None}


@router.get("/templates/search/tags")
async def search_by_tags(
    tags: str = Query("", description="Comma-separated tags, e.g. a,b"),
    query: QueryService = Depends(get_query_service),
):
    """Templates carrying any of the given tags"""
    templates = query.search_by_tags(tags)
    return {"success": True, "data": [template.to_dict() for template in templates]}


@router.get("/templates/category/{category}")
async def templates_by_category(
    category: str,
    query: QueryService = Depends(get_query_service),
):
    """Templates in one category"""
    templates = query.by_category(category)
    return {"success": True, "data": [template.to_dict() for template in templates]}


@router.get("/templates/{template_id}")
async def get_template(
    template_id: str,
    query: QueryService = Depends(get_query_service),
):
    """Fetch one template"""
    template = query.get_template(template_id)
    return {"success": True, "data": template.to_dict()}


@router.post("/templates", status_code=status.HTTP_201_CREATED)
async def create_template(
    image: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    zones: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    coordinator: AssetLifecycleCoordinator = Depends(get_coordinator),
):
    """
    Create a template from a multipart upload

    `zones` and `tags` are JSON-encoded form fields.
    """
    logger.info("create_template_request", name=name, has_image=image is not None)

    template = await coordinator.create_template(
        name=name,
        asset=await _read_upload(image),
        zones=zones,
        tags=tags,
        category=category,
        pixel_width=width,
        pixel_height=height,
    )
    return {
        "success": True,
        "data": template.to_dict(),
        "message": "Template created successfully",
    }


@router.put("/templates/{template_id}")
async def update_template(
    template_id: str,
    image: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    zones: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    coordinator: AssetLifecycleCoordinator = Depends(get_coordinator),
):
    """Patch template fields; a new image replaces the current asset"""
    template = await coordinator.update_template(
        template_id,
        name=name,
        asset=await _read_upload(image),
        zones=zones,
        tags=tags,
        category=category,
        pixel_width=width,
        pixel_height=height,
    )
    return {
        "success": True,
        "data": template.to_dict(),
        "message": "Template updated successfully",
    }


@router.delete("/templates/{template_id}")
async def delete_template(
    template_id: str,
    coordinator: AssetLifecycleCoordinator = Depends(get_coordinator),
):
    """Delete a template and its asset"""
    await coordinator.delete_template(template_id)
    return {"success": True, "message": "Template deleted successfully"}


@router.post("/templates/{template_id}/zones")
async def replace_zones(
    template_id: str,
    request: ZonesUpdateRequest,
    coordinator: AssetLifecycleCoordinator = Depends(get_coordinator),
):
    """Replace a template's zone list"""
    template = await coordinator.replace_zones(template_id, request.zones)
    return {
        "success": True,
        "data": template.to_dict(),
        "message": "Zones updated successfully",
    }


@router.post("/templates/{template_id}/use")
async def use_template(
    template_id: str,
    coordinator: AssetLifecycleCoordinator = Depends(get_coordinator),
):
    """Count one use of a template"""
    template = await coordinator.record_use(template_id)
    return {"success": True, "data": template.to_dict()}
