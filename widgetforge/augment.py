from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from widgetforge.errors import ImageGenerationFailed, ServiceError, ValidationError
from widgetforge.llm_client import IMAGE_SIZE, OPENAI_IMAGE_MODEL, GenerationService
from widgetforge.models import GeneratedComponent, WidgetWithImage
from widgetforge.render import render_background_css, render_wrapped_html

log = logging.getLogger(__name__)


def first_image_url(payload: Dict[str, Any]) -> Optional[str]:
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list) or not data:
        return None
    first = data[0]
    url = first.get("url") if isinstance(first, dict) else None
    if isinstance(url, str) and url.strip():
        return url.strip()
    return None


async def request_image(service: GenerationService, image_description: str) -> str:
    """Ask the image service for one picture and return its URL."""
    log.info("augment.image request desc_len=%d model=%s size=%s", len(image_description), OPENAI_IMAGE_MODEL, IMAGE_SIZE)
    try:
        payload = await service.generate_image(image_description, model=OPENAI_IMAGE_MODEL, size=IMAGE_SIZE, n=1)
    except ServiceError as e:
        log.error("augment.image service error status=%s err=%s", e.status_code, e.message)
        raise ImageGenerationFailed(
            f"Failed to generate image: {e.message}",
            context={"status_code": e.status_code, **e.context},
        ) from e

    url = first_image_url(payload)
    if not url:
        n_items = len(payload.get("data") or []) if isinstance(payload, dict) else 0
        log.error("augment.image no url items=%d", n_items)
        raise ImageGenerationFailed("Failed to generate image: no URL in response", context={"items": n_items})
    log.info("augment.image ok url_len=%d", len(url))
    return url


def compose_widget(component: GeneratedComponent, image_url: str, prompt: str) -> WidgetWithImage:
    """
    Wrap a validated component in the image-backed container. Pure; the
    original css is appended after the generated rules so it can override them.
    """
    theme = component.theme
    if theme is None:
        log.error("augment.compose missing theme")
        raise ValidationError(
            "Invalid component structure: required property 'theme' is missing",
            [{"path": "theme", "message": "required property 'theme' is missing"}],
        )

    css = render_background_css(component.css, image_url, theme)
    html = render_wrapped_html(component.html)
    widget = WidgetWithImage(
        html=html,
        css=css,
        javascript=component.javascript,
        image_description=component.image_description,
        theme=theme,
        description=f'Widget with background image, generated from prompt: "{prompt}"',
        image_url=image_url,
    )
    log.info("augment.compose ok html_len=%d css_len=%d", len(html), len(css))
    return widget
