"""Material category inference from provider tags, domains and file suffixes."""
from typing import Optional, Tuple

from processor.models import MaterialType

PROVIDER_TAGS = {
    'slide': MaterialType.SLIDE,
    'slides': MaterialType.SLIDE,
    'video': MaterialType.VIDEO,
    'blog': MaterialType.DOCUMENT,
    'document': MaterialType.DOCUMENT,
}

# Evaluated in order; the first matching group wins.
DOMAIN_RULES: Tuple[Tuple[MaterialType, Tuple[str, ...]], ...] = (
    (MaterialType.SLIDE, (
        'speakerdeck.com',
        'slideshare.net',
        'slides.com',
        'docs.google.com/presentation',
    )),
    (MaterialType.VIDEO, (
        'youtube.com',
        'youtu.be',
        'vimeo.com',
    )),
    (MaterialType.DOCUMENT, (
        'docs.google.com/document',
        'notion.so',
        'github.com',
        'qiita.com',
        'zenn.dev',
    )),
)

SUFFIX_RULES: Tuple[Tuple[MaterialType, Tuple[str, ...]], ...] = (
    (MaterialType.SLIDE, ('.pdf', '.ppt', '.pptx')),
    (MaterialType.DOCUMENT, ('.doc', '.docx', '.txt', '.md')),
    (MaterialType.VIDEO, ('.mp4', '.avi', '.mov', '.wmv')),
)


def infer_material_type(
    url: str,
    presentation_type: Optional[str] = None
) -> MaterialType:
    """
    Infer the category of a presentation material.

    Args:
        url: Material URL
        presentation_type: Category tag supplied by connpass, if any

    Returns:
        Inferred MaterialType
    """
    if presentation_type:
        tagged = PROVIDER_TAGS.get(presentation_type.strip().lower())
        if tagged is not None:
            return tagged

    lower_url = (url or '').lower()

    for material_type, domains in DOMAIN_RULES:
        if any(domain in lower_url for domain in domains):
            return material_type

    for material_type, suffixes in SUFFIX_RULES:
        if lower_url.endswith(suffixes):
            return material_type

    return MaterialType.OTHER
