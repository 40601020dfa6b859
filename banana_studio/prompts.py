"""
Prompt templates for each generation operation.

Pure string building: no I/O and no failure modes beyond bad argument types
or undecodable image data.
"""

from typing import Optional

from .models import (
    BackendRequest,
    BinaryImage,
    FitCheck,
    Fuse,
    GenerationRequest,
    StyleTransform,
    TextToImage,
)


FUSE_PROMPT = (
    "Fuse two images. Use the first image's subject and the second's "
    "background/texture. Make it cohesive."
)

FIT_CHECK_PROMPT = """Compare the person in the first image with the outfit in the second image.
Create a realistic visualization of the person wearing the outfit, keeping their face, pose and body shape.

Then return a fit analysis as a JSON object:
{
    "score": <integer from 1 to 10>,
    "colorFeedback": "How the outfit colors work with the person's complexion",
    "sizeFeedback": "How the outfit would fit the person's build",
    "occasion": "Occasions the outfit suits",
    "suggestions": "Concrete styling suggestions"
}
"""


def text_to_image_prompt(prompt: str, style: str, aspect: str) -> str:
    return f"{prompt} Style: {style}. Aspect: {aspect}."


def style_transform_prompt(style: str, refine_prompt: Optional[str] = None) -> str:
    if refine_prompt:
        return f"Transform image to {style}. {refine_prompt}"
    return f"Transform image to {style}."


def build_backend_request(request: GenerationRequest) -> BackendRequest:
    """Turn a typed request into instruction text plus ordered images.

    Image inputs (BinaryImage, data URL or bytes) are decoded here.
    """
    if isinstance(request, TextToImage):
        return BackendRequest(
            operation=request.operation,
            prompt=text_to_image_prompt(request.prompt, request.style, request.aspect),
        )
    if isinstance(request, StyleTransform):
        return BackendRequest(
            operation=request.operation,
            prompt=style_transform_prompt(request.style, request.refine_prompt),
            images=(BinaryImage.coerce(request.source_image),),
        )
    if isinstance(request, Fuse):
        return BackendRequest(
            operation=request.operation,
            prompt=FUSE_PROMPT,
            images=(BinaryImage.coerce(request.image_a), BinaryImage.coerce(request.image_b)),
        )
    if isinstance(request, FitCheck):
        return BackendRequest(
            operation=request.operation,
            prompt=FIT_CHECK_PROMPT,
            images=(BinaryImage.coerce(request.person_image), BinaryImage.coerce(request.outfit_image)),
        )
    raise TypeError(f"Unsupported request type: {type(request).__name__}")
