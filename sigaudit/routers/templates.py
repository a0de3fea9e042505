"""Signature template API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response

from sigaudit.schemas.template import TemplateDefinition, TemplateUpdate

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("", response_model=list[TemplateDefinition])
def list_templates(request: Request) -> list[TemplateDefinition]:
    """All saved designs, ordered by name."""
    return request.app.state.template_store.list_all()


@router.get("/default", response_model=TemplateDefinition)
def get_default_template(request: Request) -> TemplateDefinition:
    """The template audits and deployments render with."""
    return request.app.state.template_store.get_default()


@router.get("/{template_id}", response_model=TemplateDefinition)
def get_template(template_id: str, request: Request) -> TemplateDefinition:
    template = request.app.state.template_store.get(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template '{template_id}' not found")
    return template


@router.put("/{template_id}", response_model=TemplateDefinition)
def save_template(template_id: str, body: TemplateUpdate, request: Request) -> TemplateDefinition:
    """Create or replace a design; the default flag is kept as stored."""
    store = request.app.state.template_store
    existing = store.get(template_id)
    is_default = existing.is_default if existing is not None else False
    return store.save(body.to_definition(template_id, is_default=is_default))


@router.delete("/{template_id}", status_code=204)
def delete_template(template_id: str, request: Request) -> Response:
    """Delete a saved design. The default template cannot be deleted (409)."""
    if not request.app.state.template_store.delete(template_id):
        raise HTTPException(status_code=404, detail=f"Template '{template_id}' not found")
    return Response(status_code=204)


@router.post("/{template_id}/default", response_model=TemplateDefinition)
def set_default_template(template_id: str, request: Request) -> TemplateDefinition:
    template = request.app.state.template_store.set_default(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template '{template_id}' not found")
    return template
