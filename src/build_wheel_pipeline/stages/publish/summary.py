from __future__ import annotations

from pathlib import Path

from build_wheel_pipeline.core import append_text


def render_summary(url: str, *, retention_days: int) -> str:
    return (
        "### Download URL\n"
        "\n"
        f"{url}\n"
        "\n"
        "### Notes\n"
        "\n"
        f"- The artifact will be deleted after {retention_days} days.\n"
        "- Unzip the downloaded artifact to get the wheel.\n"
    )


def append_summary(path: Path, url: str, *, retention_days: int) -> None:
    append_text(path, render_summary(url, retention_days=retention_days))
