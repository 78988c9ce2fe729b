import json
from typing import Any, Dict, List, Optional

from widgetforge.errors import ServiceError

GOOD_COMPONENT = {
    "html": "<div class=\"card\"><h2>Hello</h2></div>",
    "css": ".card { padding: 1rem; }",
    "javascript": "",
    "imageDescription": "A calm watercolor lake at dawn",
    "theme": {
        "primary": "#1B5E20",
        "secondary": "#FFC107",
        "gradient": "linear-gradient(red, blue)",
    },
}


def completion(text: Optional[str]) -> Dict[str, Any]:
    if text is None:
        return {"choices": []}
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": text}}]}


class FakeService:
    """Stands in for OpenAIService; records every call."""

    def __init__(
        self,
        text: Optional[str] = None,
        image_payload: Optional[Dict[str, Any]] = None,
        image_error: Optional[Exception] = None,
        has_token: bool = True,
    ) -> None:
        self.text = json.dumps(GOOD_COMPONENT) if text is None else text
        self.image_payload = image_payload if image_payload is not None else {"data": [{"url": "https://img.test/a.png"}]}
        self.image_error = image_error
        self.has_token = has_token
        self.complete_calls: List[Dict[str, Any]] = []
        self.image_calls: List[Dict[str, Any]] = []

    async def complete(self, messages, *, model, temperature, max_tokens, response_format=None):
        self.complete_calls.append(
            {
                "messages": messages,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "response_format": response_format,
            }
        )
        return completion(self.text)

    async def generate_image(self, prompt, *, model, size, n=1):
        self.image_calls.append({"prompt": prompt, "model": model, "size": size, "n": n})
        if self.image_error is not None:
            raise self.image_error
        return self.image_payload


def failing_image_service() -> FakeService:
    return FakeService(image_error=ServiceError("image HTTP 500", status_code=500))
