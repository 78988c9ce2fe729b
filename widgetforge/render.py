from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from widgetforge.models import Theme

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# Only .html templates escape by default; widget markup is passed through with |safe
_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
    undefined=StrictUndefined,
    keep_trailing_newline=False,
    enable_async=False,
)


def _css_url(url: str) -> str:
    # The url sits inside single quotes in the stylesheet
    return (url or "").replace("\\", "%5C").replace("'", "%27").replace("\n", "")


def render_background_css(css: str, image_url: str, theme: Theme) -> str:
    """
    Container/overlay/content rules for an image-backed widget, followed by
    the widget's own stylesheet.
    """
    tpl = _env.get_template("widget_background.css")
    return tpl.render(css=css or "", image_url=_css_url(image_url), theme=theme)


def render_wrapped_html(html: str) -> str:
    return _env.get_template("widget_wrapper.html").render(html=html or "")


def render_preview_page(name: str, code: Dict[str, Any]) -> str:
    """Full standalone HTML document embedding a saved widget's code."""
    tpl = _env.get_template("preview.html")
    return tpl.render(
        name=name or "Widget",
        html=code.get("html") or "",
        css=code.get("css") or "",
        javascript=code.get("javascript") or "",
    )
