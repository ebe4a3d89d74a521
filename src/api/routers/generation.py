"""API router for tag generation and tag explanations."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from api.dependencies import get_orchestrator, get_tag_library
from api.errors import to_http_exception
from models.domain import DescriptionStyle, GenerationRequest, GenerationSettings, TagLanguage
from models.schemas import GenerationResponseSchema, TagExplanationResponse
from services.llm_errors import LLMError
from services.orchestrator import GenerationOrchestrator
from services.tag_library import TagLibrary

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_MIME_TYPE = "image/jpeg"


async def _read_image(image: UploadFile) -> tuple[bytes, str]:
    data = await image.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded image is empty.")
    return data, image.content_type or DEFAULT_MIME_TYPE


def _require_library(tag_library: TagLibrary) -> None:
    if not tag_library.is_loaded:
        raise HTTPException(status_code=400, detail="The tag library has not been loaded.")


@router.post("/tags", response_model=GenerationResponseSchema)
async def generate_tags(
    image: UploadFile = File(...),
    tags_count: int = Form(10, ge=1, le=50),
    description_style: DescriptionStyle = Form(DescriptionStyle.DEFAULT),
    tag_language: TagLanguage = Form(TagLanguage.SC),
    use_thinking: bool = Form(False),
    pinned_tags: Optional[List[str]] = Form(None),
    excluded_tags: Optional[List[str]] = Form(None),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    tag_library: TagLibrary = Depends(get_tag_library),
) -> GenerationResponseSchema:
    """
    Generate a description, library tags and marketing copy for a cover image.

    Pinned and excluded tags are passed back to the model as feedback when
    regenerating.
    """
    _require_library(tag_library)
    data, mime_type = await _read_image(image)

    request = GenerationRequest(
        image=data,
        mime_type=mime_type,
        tag_library_csv=tag_library.text,
        settings=GenerationSettings(
            tags_count=tags_count,
            description_style=description_style,
            tag_language=tag_language,
            use_thinking=use_thinking,
        ),
        pinned_tags=tuple(pinned_tags) if pinned_tags else None,
        excluded_tags=tuple(excluded_tags) if excluded_tags else None,
    )
    try:
        response = await orchestrator.generate_tags(request)
    except LLMError as e:
        logger.error(f"Tag generation failed: {e.message}")
        raise to_http_exception(e)

    return GenerationResponseSchema.from_response(response)


@router.post("/explain", response_model=TagExplanationResponse)
async def explain_tag(
    image: UploadFile = File(...),
    tag_name: str = Form(..., min_length=1),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
    tag_library: TagLibrary = Depends(get_tag_library),
) -> TagExplanationResponse:
    data, mime_type = await _read_image(image)
    description = tag_library.description_for(tag_name)
    try:
        explanation = await orchestrator.explain_tag(data, mime_type, tag_name, description)
    except LLMError as e:
        logger.error(f"Tag explanation failed for {tag_name}: {e.message}")
        raise to_http_exception(e)

    return TagExplanationResponse(tag_name=tag_name, explanation=explanation)
