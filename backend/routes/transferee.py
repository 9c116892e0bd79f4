"""
Transferee routes — validate and preview manually encoded records.
"""

from fastapi import APIRouter, HTTPException

from core.transferee import TransfereeValidationError, preview_transferee_record

router = APIRouter()


@router.post("/preview")
async def preview(payload: dict):
    """
    Build the grade document for a transferee form and show its averages.
    Expects: { "form": {...}, "existing_ay_codes": ["AY2324_transferee", ...] }
    """
    form = payload.get("form")
    if not isinstance(form, dict):
        raise HTTPException(400, "No form provided.")

    try:
        return preview_transferee_record(form, payload.get("existing_ay_codes") or [])
    except TransfereeValidationError as exc:
        raise HTTPException(422, {"message": "Please review the highlighted fields.", "errors": exc.errors})
