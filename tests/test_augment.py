import asyncio

import pytest

from widgetforge.augment import compose_widget, request_image
from widgetforge.errors import ImageGenerationFailed, ValidationError
from widgetforge.llm_client import IMAGE_SIZE, OPENAI_IMAGE_MODEL
from widgetforge.models import GeneratedComponent, WidgetWithImage

from fakes import GOOD_COMPONENT, FakeService, failing_image_service

IMAGE_URL = "https://img.test/a.png"


def _component(**overrides):
    return GeneratedComponent.model_validate({**GOOD_COMPONENT, **overrides})


def test_overlay_uses_theme_gradient_verbatim():
    widget = compose_widget(_component(), IMAGE_URL, "lake")
    assert "background: linear-gradient(red, blue)" in widget.css
    assert f"background-image: url('{IMAGE_URL}')" in widget.css
    assert "color: #1B5E20" in widget.css
    assert "border-left: 3px solid #FFC107" in widget.css


def test_original_css_follows_generated_rules():
    comp = _component(css=".card > h2 { color: red; }")
    widget = compose_widget(comp, IMAGE_URL, "lake")
    assert widget.css.index(".widget-container::before") < widget.css.index(".card > h2 { color: red; }")
    assert widget.css.rstrip().endswith(".card > h2 { color: red; }")


def test_html_is_wrapped_unescaped():
    widget = compose_widget(_component(), IMAGE_URL, "lake")
    assert widget.html.startswith('<div class="widget-container">')
    assert '<div class="widget-content">' in widget.html
    assert GOOD_COMPONENT["html"] in widget.html


def test_other_fields_carry_through():
    widget = compose_widget(_component(javascript="init();"), IMAGE_URL, "a calm lake")
    assert isinstance(widget, WidgetWithImage)
    assert widget.javascript == "init();"
    assert widget.image_url == IMAGE_URL
    assert widget.description == 'Widget with background image, generated from prompt: "a calm lake"'
    wire = widget.to_wire()
    assert wire["imageUrl"] == IMAGE_URL
    assert wire["imageDescription"] == GOOD_COMPONENT["imageDescription"]


def test_quote_in_image_url_cannot_break_out():
    widget = compose_widget(_component(), "https://img.test/a'b.png", "x")
    assert "url('https://img.test/a%27b.png')" in widget.css


def test_missing_theme_is_a_validation_error():
    comp = GeneratedComponent.model_validate({k: v for k, v in GOOD_COMPONENT.items() if k != "theme"})
    with pytest.raises(ValidationError) as ei:
        compose_widget(comp, IMAGE_URL, "x")
    assert "theme" in ei.value.message


def test_request_image_returns_first_url():
    svc = FakeService()
    url = asyncio.run(request_image(svc, "a lake"))
    assert url == "https://img.test/a.png"
    assert svc.image_calls == [{"prompt": "a lake", "model": OPENAI_IMAGE_MODEL, "size": IMAGE_SIZE, "n": 1}]


@pytest.mark.parametrize("payload", [{"data": []}, {"data": [{"b64_json": "..."}]}, {}])
def test_request_image_without_url_fails(payload):
    with pytest.raises(ImageGenerationFailed):
        asyncio.run(request_image(FakeService(image_payload=payload), "a lake"))


def test_request_image_service_error_becomes_image_failure():
    with pytest.raises(ImageGenerationFailed) as ei:
        asyncio.run(request_image(failing_image_service(), "a lake"))
    assert ei.value.context["status_code"] == 500
