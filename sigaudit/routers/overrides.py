"""Per-user override API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response

from sigaudit.schemas.overrides import OverrideRecord, OverrideUpdate

router = APIRouter(prefix="/api/overrides", tags=["overrides"])


@router.get("", response_model=list[OverrideRecord])
def list_overrides(request: Request) -> list[OverrideRecord]:
    return request.app.state.override_store.list_all()


@router.get("/{user_id}", response_model=OverrideRecord)
def get_overrides(user_id: str, request: Request) -> OverrideRecord:
    record = request.app.state.override_store.get(user_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No overrides stored for user '{user_id}'")
    return record


@router.put("/{user_id}", response_model=OverrideRecord)
def save_overrides(user_id: str, body: OverrideUpdate, request: Request) -> OverrideRecord:
    """Replace a user's overrides; pronouns are normalised, e.g. "he / him" -> "He/Him"."""
    return request.app.state.override_store.save(body.to_record(user_id))


@router.delete("/{user_id}", status_code=204)
def delete_overrides(user_id: str, request: Request) -> Response:
    if not request.app.state.override_store.delete(user_id):
        raise HTTPException(status_code=404, detail=f"No overrides stored for user '{user_id}'")
    return Response(status_code=204)
