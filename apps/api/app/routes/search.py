from __future__ import annotations

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from app.dependencies.providers import get_admission, get_vision_model
from app.routes.cars import read_upload, to_response
from app.services.admission import AdmissionCheck, request_fingerprint
from app.services.extraction import VisionModel, detect_image_mime, extract_search_hint

router = APIRouter(prefix="/search", tags=["search"])


@router.post("/image")
async def search_by_image(
    request: Request,
    file: UploadFile = File(...),
    admission: AdmissionCheck = Depends(get_admission),
    model: VisionModel = Depends(get_vision_model),
):
    """
    Public image search: photo -> {make, bodyType, color, confidence}.

    Rate limited per client (429 with remaining / resetInSeconds).
    """
    content = await read_upload(file)
    mime_type = detect_image_mime(content, file.content_type)

    result = await run_in_threadpool(
        extract_search_hint,
        content,
        mime_type,
        request_fingerprint(request),
        admission,
        model,
    )
    return to_response(result)
