from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog

from build_wheel_pipeline.core import (
    PublicationError,
    atomic_dir_commit,
    atomic_write_json,
    copy_or_hardlink,
    make_tmp_dir_for,
    parse_iso,
    read_json,
    remove_tree,
    sha256_file,
    utc_iso_after,
    utc_now,
    utc_now_iso,
)

log = structlog.get_logger(__name__)

ARTIFACT_META = "artifact.json"
RETENTION_HEADER = "X-Retention-Days"


@dataclass(frozen=True, slots=True)
class StoredArtifact:
    name: str
    url: str
    bytes: int
    sha256: str
    uploaded_at_utc: str
    expires_at_utc: str
    retention_days: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ArtifactStore(Protocol):
    def upload(self, path: Path, *, name: str, retention_days: int) -> StoredArtifact: ...


class LocalArtifactStore:
    """
    Directory-backed store:

      {root}/{name}/{file}
      {root}/{name}/artifact.json
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def artifact_dir(self, name: str) -> Path:
        if not name or "/" in name or name in (".", ".."):
            raise PublicationError(f"Invalid artifact name: {name!r}")
        return self.root / name

    def upload(self, path: Path, *, name: str, retention_days: int) -> StoredArtifact:
        path = Path(path)
        if not path.is_file():
            raise PublicationError(f"Artifact file missing: {path}")

        final_dir = self.artifact_dir(name)
        digest = sha256_file(path)
        tmp = make_tmp_dir_for(final_dir)
        try:
            copy_or_hardlink(path, tmp / path.name)
            art = StoredArtifact(
                name=name,
                url=(final_dir / path.name).resolve().as_uri(),
                bytes=digest.bytes,
                sha256=digest.sha256,
                uploaded_at_utc=utc_now_iso(),
                expires_at_utc=utc_iso_after(days=retention_days),
                retention_days=retention_days,
            )
            atomic_write_json(tmp / ARTIFACT_META, art.to_dict())
            atomic_dir_commit(tmp_dir=tmp, final_dir=final_dir, overwrite=True)
        except OSError as e:
            remove_tree(tmp)
            raise PublicationError(f"Could not store artifact {name}: {e}") from e

        log.info("Artifact stored", name=name, url=art.url, expires=art.expires_at_utc)
        return art

    def list(self) -> list[StoredArtifact]:
        if not self.root.is_dir():
            return []
        out = []
        for meta in sorted(self.root.glob(f"*/{ARTIFACT_META}")):
            out.append(StoredArtifact(**read_json(meta)))
        return out

    def prune_expired(self, *, now: datetime | None = None) -> list[str]:
        """Delete artifacts past their expiry. Returns the pruned names."""
        now = now or utc_now()
        pruned = []
        for art in self.list():
            if parse_iso(art.expires_at_utc) <= now:
                remove_tree(self.artifact_dir(art.name))
                pruned.append(art.name)
                log.info("Artifact expired", name=art.name, expired=art.expires_at_utc)
        return pruned


def make_http_client(
    *,
    token: str | None = None,
    timeout: httpx.Timeout | None = None,
    user_agent: str = "build-wheel-pipeline/0.1",
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    t = timeout or httpx.Timeout(connect=5.0, read=120.0, write=120.0, pool=5.0)
    headers = {"User-Agent": user_agent}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(
        timeout=t, follow_redirects=True, headers=headers, transport=transport
    )


class HttpArtifactStore:
    """
    Uploads with a single PUT to {base_url}/{name}. The server answers with JSON
    carrying at least `url`; nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._transport = transport

    def upload(self, path: Path, *, name: str, retention_days: int) -> StoredArtifact:
        path = Path(path)
        digest = sha256_file(path)
        url = f"{self.base_url}/{name}"

        try:
            with make_http_client(token=self._token, transport=self._transport) as client:
                with path.open("rb") as f:
                    resp = client.put(
                        url,
                        content=f.read(),
                        headers={
                            RETENTION_HEADER: str(retention_days),
                            "Content-Type": "application/zip",
                            "X-Content-SHA256": digest.sha256,
                        },
                    )
        except httpx.HTTPError as e:
            raise PublicationError(f"Upload of {name} failed: {e}") from e

        if not resp.is_success:
            snippet = resp.text[:200] if resp.text else None
            msg = f"HTTP {resp.status_code} for PUT {url}"
            if snippet:
                msg += f" (body: {snippet})"
            raise PublicationError(msg)

        try:
            body = resp.json()
        except ValueError as e:
            raise PublicationError(f"Upload of {name} returned non-JSON body") from e
        download_url = body.get("url") if isinstance(body, dict) else None
        if not download_url:
            raise PublicationError(f"Upload of {name} returned no download URL")

        art = StoredArtifact(
            name=name,
            url=str(download_url),
            bytes=digest.bytes,
            sha256=digest.sha256,
            uploaded_at_utc=utc_now_iso(),
            expires_at_utc=str(
                body.get("expires_at") or utc_iso_after(days=retention_days)
            ),
            retention_days=retention_days,
        )
        log.info("Artifact uploaded", name=name, url=art.url, status=resp.status_code)
        return art
