from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import httpx
import pytest

from build_wheel_pipeline.core import PublicationError, utc_now
from build_wheel_pipeline.stages.publish import (
    HttpArtifactStore,
    LocalArtifactStore,
    render_summary,
    stage_publish,
)
from build_wheel_pipeline.trigger import EventName, Trigger

WHEEL = "mlflow-3.1.0-py3-none-any.whl"


def _wheel(tmp_path: Path) -> Path:
    p = tmp_path / "dist" / WHEEL
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(b"PK\x03\x04fake")
    return p


def test_summary_text() -> None:
    text = render_summary("https://example.test/a", retention_days=7)
    assert text.startswith("### Download URL\n")
    assert "https://example.test/a" in text
    assert "### Notes" in text
    assert "- The artifact will be deleted after 7 days." in text
    assert "- Unzip the downloaded artifact to get the wheel." in text


def test_local_store_upload_and_prune(tmp_path: Path) -> None:
    store = LocalArtifactStore(tmp_path / "store")
    art = store.upload(_wheel(tmp_path), name=WHEEL, retention_days=7)

    assert art.url.startswith("file://")
    assert (tmp_path / "store" / WHEEL / WHEEL).read_bytes() == b"PK\x03\x04fake"
    meta = json.loads((tmp_path / "store" / WHEEL / "artifact.json").read_text())
    assert meta["retention_days"] == 7
    assert [a.name for a in store.list()] == [WHEEL]

    assert store.prune_expired() == []
    assert store.prune_expired(now=utc_now() + timedelta(days=8)) == [WHEEL]
    assert not (tmp_path / "store" / WHEEL).exists()


def test_local_store_rejects_bad_names(tmp_path: Path) -> None:
    store = LocalArtifactStore(tmp_path / "store")
    with pytest.raises(PublicationError):
        store.upload(_wheel(tmp_path), name="../escape", retention_days=7)
    with pytest.raises(PublicationError):
        store.upload(tmp_path / "missing.whl", name=WHEEL, retention_days=7)


def test_http_store_puts_with_retention_and_token(tmp_path: Path) -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["retention"] = request.headers.get("X-Retention-Days")
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = request.content
        return httpx.Response(201, json={"url": "https://artifacts.test/dl/1"})

    store = HttpArtifactStore(
        "https://artifacts.test/upload/",
        token="tok",
        transport=httpx.MockTransport(handler),
    )
    art = store.upload(_wheel(tmp_path), name=WHEEL, retention_days=7)

    assert art.url == "https://artifacts.test/dl/1"
    assert seen["method"] == "PUT"
    assert seen["url"] == f"https://artifacts.test/upload/{WHEEL}"
    assert seen["retention"] == "7"
    assert seen["auth"] == "Bearer tok"
    assert seen["body"] == b"PK\x03\x04fake"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(403, text="forbidden"),
        httpx.Response(200, json={"nope": 1}),
        httpx.Response(200, text="not json"),
    ],
)
def test_http_store_errors(tmp_path: Path, response: httpx.Response) -> None:
    store = HttpArtifactStore(
        "https://artifacts.test", transport=httpx.MockTransport(lambda r: response)
    )
    with pytest.raises(PublicationError):
        store.upload(_wheel(tmp_path), name=WHEEL, retention_days=7)


def _publish_ctx(ctx_factory, tmp_path: Path, **kw):
    ctx = ctx_factory(store=LocalArtifactStore(tmp_path / "store"), **kw)
    wheel = ctx.job.dist_dir / WHEEL
    wheel.parent.mkdir(parents=True, exist_ok=True)
    wheel.write_bytes(b"PK\x03\x04fake")
    ctx.outputs["dist"] = {"wheel-name": WHEEL, "wheel-path": str(wheel)}
    return ctx


def test_stage_publish_uploads_and_writes_summary(tmp_path: Path, ctx_factory) -> None:
    summary = tmp_path / "step_summary.md"
    ctx = _publish_ctx(ctx_factory, tmp_path, step_summary=summary)

    out = stage_publish(ctx)

    assert out["artifact_name"] == WHEEL
    assert out["artifact_url"].startswith("file://")
    text = summary.read_text()
    assert out["artifact_url"] in text
    assert "7 days" in text
    types = [e["type"] for e in ctx.events.read()]
    assert "publish.start" in types and "publish.finish" in types


def test_stage_publish_refuses_non_manual_runs(tmp_path: Path, ctx_factory) -> None:
    ctx = _publish_ctx(ctx_factory, tmp_path, trigger=Trigger(event=EventName.push))
    with pytest.raises(PublicationError, match="manual"):
        stage_publish(ctx)


def test_stage_publish_errors_when_no_files_match(tmp_path: Path, ctx_factory) -> None:
    ctx = _publish_ctx(ctx_factory, tmp_path)
    (ctx.job.dist_dir / WHEEL).unlink()
    with pytest.raises(PublicationError, match="No files found"):
        stage_publish(ctx)
