"""Generation pipeline entry points.

Each stage either returns its value or raises a WidgetGenerationError
subclass; nothing is retried and no partial result is returned.
"""

from __future__ import annotations

import logging

from widgetforge.augment import compose_widget, request_image
from widgetforge.llm_client import GenerationService, request_completion
from widgetforge.llm_parsing import recover_json
from widgetforge.models import GeneratedComponent, WidgetWithImage
from widgetforge.validators import validate_component

log = logging.getLogger(__name__)


async def generate_component(
    service: GenerationService,
    prompt: str,
    additional_context: str = "",
    require_theme: bool = False,
) -> GeneratedComponent:
    raw = await request_completion(service, prompt, additional_context)
    obj = recover_json(raw)
    component = validate_component(obj, require_theme=require_theme)
    log.info("generator.component ok prompt_len=%d", len(prompt))
    return component


async def generate_widget_with_image(
    service: GenerationService,
    prompt: str,
    additional_context: str = "",
) -> WidgetWithImage:
    component = await generate_component(service, prompt, additional_context, require_theme=True)
    image_url = await request_image(service, component.image_description)
    return compose_widget(component, image_url, prompt)
