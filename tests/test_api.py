import pytest
from fastapi.testclient import TestClient

from widgetforge import auth, ratelimit
from widgetforge import main as main_mod
from widgetforge.main import app, get_service

from fakes import GOOD_COMPONENT, FakeService

client = TestClient(app)

API_HEADERS = {"x-api-key": "demo_123"}


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setattr(auth, "API_KEYS", set())
    monkeypatch.setattr(main_mod, "_rl_instance", None)
    ratelimit._reset()
    yield
    app.dependency_overrides.clear()
    ratelimit._reset()


def _use(service):
    app.dependency_overrides[get_service] = lambda: service
    return service


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_llm_status_shape():
    body = client.get("/llm/status").json()
    assert body.get("provider") in ("openai", None)
    assert {"model", "image_model", "has_token"} <= set(body)


def test_generate_component():
    svc = _use(FakeService())
    r = client.post("/generate", json={"prompt": "a greeting card"}, headers=API_HEADERS)
    assert r.status_code == 200
    assert r.json() == GOOD_COMPONENT
    assert "X-RateLimit-Remaining" in r.headers
    assert svc.image_calls == []


def test_generate_with_image():
    _use(FakeService())
    r = client.post("/generate", json={"prompt": "a calm lake", "with_image": True})
    assert r.status_code == 200
    body = r.json()
    assert body["imageUrl"] == "https://img.test/a.png"
    assert body["description"] == 'Widget with background image, generated from prompt: "a calm lake"'
    assert "background: linear-gradient(red, blue)" in body["css"]


def test_generate_requires_prompt():
    _use(FakeService())
    r = client.post("/generate", json={"prompt": "   "})
    assert r.status_code == 400


def test_generate_without_credentials():
    _use(FakeService(has_token=False))
    r = client.post("/generate", json={"prompt": "x"})
    assert r.status_code == 503


def test_pipeline_failure_maps_to_502():
    _use(FakeService(text="Sorry, I can't help with that."))
    r = client.post("/generate", json={"prompt": "x"})
    assert r.status_code == 502
    assert r.json() == {"error": "Failed to generate content", "kind": "NoJsonFound"}


def test_generate_is_rate_limited(monkeypatch):
    monkeypatch.setattr(ratelimit, "MAX_REQUESTS", 1)
    _use(FakeService())
    assert client.post("/generate", json={"prompt": "x"}).status_code == 200
    r = client.post("/generate", json={"prompt": "x"})
    assert r.status_code == 429
    assert "Retry-After" in r.headers
    assert r.json()["error"] == "rate limit exceeded"


def test_api_key_enforced_when_configured(monkeypatch):
    monkeypatch.setattr(auth, "API_KEYS", {"demo_123"})
    _use(FakeService())
    assert client.post("/generate", json={"prompt": "x"}).status_code == 401
    assert client.post("/generate", json={"prompt": "x"}, headers=API_HEADERS).status_code == 200


def test_validate_success():
    r = client.post("/validate", json={"component": GOOD_COMPONENT, "require_theme": True})
    assert r.status_code == 200
    assert r.json()["detail"]["valid"] is True


def test_validate_failure_lists_every_field():
    r = client.post("/validate", json={"component": {"html": "<p/>", "javascript": ""}})
    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["valid"] is False
    assert [e["path"] for e in detail["errors"]] == ["css", "imageDescription"]


def test_prompts_endpoints():
    assert client.get("/prompts").json() == {"prompts": []}
    r = client.post("/prompts", json={"content": "a weather card"})
    assert r.status_code == 201
    created = r.json()
    assert client.get(f"/prompts/{created['id']}").json() == created
    assert client.get("/prompts").json()["prompts"] == [created]
    assert client.get("/prompts/1").status_code == 404
    assert client.post("/prompts", json={"content": " "}).status_code == 400


def test_widgets_crud():
    code = {"html": "<p>hi</p>", "css": "p{}", "javascript": ""}
    r = client.post("/widgets", json={"name": "Card", "data": code, "promptId": 7})
    assert r.status_code == 201
    widget = r.json()
    wid = widget["id"]
    assert widget["promptId"] == 7
    assert widget["data"] == code

    assert client.get("/widgets", params={"prompt_id": 7}).json()["widgets"] == [widget]
    assert client.get("/widgets", params={"prompt_id": 8}).json()["widgets"] == []

    r = client.put(f"/widgets/{wid}", json={"name": "Renamed", "data": {"javascript": "init();"}})
    assert r.status_code == 200
    assert r.json()["id"] == wid
    assert r.json()["name"] == "Renamed"
    assert r.json()["data"]["javascript"] == "init();"
    assert r.json()["data"]["html"] == "<p>hi</p>"

    assert client.delete(f"/widgets/{wid}").status_code == 204
    assert client.get(f"/widgets/{wid}").status_code == 404
    assert client.delete(f"/widgets/{wid}").status_code == 404
    assert client.put(f"/widgets/{wid}", json={"name": "x"}).status_code == 404


def test_widget_preview_replays_code():
    code = {"html": "<div id=\"w\">hi</div>", "css": "#w > p { color: red; }", "javascript": "console.log(1);"}
    wid = client.post("/widgets", json={"name": "<b>Card</b>", "data": code}).json()["id"]
    r = client.get(f"/widgets/{wid}/preview")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    page = r.text
    assert "<title>&lt;b&gt;Card&lt;/b&gt;</title>" in page
    assert code["html"] in page
    assert code["css"] in page
    assert "<script>" in page and code["javascript"] in page
    assert client.get("/widgets/missing/preview").status_code == 404


def test_generated_widget_can_be_saved():
    _use(FakeService())
    body = client.post("/generate", json={"prompt": "x"}).json()
    data = {k: body[k] for k in ("html", "css", "javascript")}
    saved = client.post("/widgets", json={"name": "Generated", "data": data}).json()
    assert saved["data"] == data
    assert client.get(f"/widgets/{saved['id']}").json()["name"] == "Generated"
