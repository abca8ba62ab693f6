from __future__ import annotations

import os
from pathlib import Path

from build_wheel_pipeline.core import CommandError, CommandRunner, InstallError


def venv_python(venv_dir: Path) -> Path:
    if os.name == "nt":
        return venv_dir / "Scripts" / "python.exe"
    return venv_dir / "bin" / "python"


def create_venv(runner: CommandRunner, *, python: str, venv_dir: Path) -> Path:
    try:
        runner.run([python, "-m", "venv", "--clear", str(venv_dir)])
    except CommandError as e:
        raise InstallError(f"Could not create virtual environment: {e}") from e
    return venv_python(venv_dir)


def version_probe(import_name: str) -> str:
    return f"import {import_name}; print({import_name}.__version__)"


def parse_version(output: str) -> str:
    """The version is the last non-blank line; earlier lines may be warnings."""
    lines = [ln.strip() for ln in output.splitlines() if ln.strip()]
    return lines[-1] if lines else ""


def import_checks(
    runner: CommandRunner, *, python: Path, import_name: str, cwd: Path
) -> str:
    """
    Import the package, print its version, then star-import it. Returns the version.
    """
    try:
        res = runner.run([str(python), "-c", version_probe(import_name)], cwd=cwd)
        runner.run([str(python), "-c", f"from {import_name} import *"], cwd=cwd)
    except CommandError as e:
        raise InstallError(f"Import check failed for {import_name}: {e}") from e

    version = parse_version(res.output)
    if not version or version == "None":
        raise InstallError(f"{import_name} reported no version after install")
    return version


def install_and_check(
    runner: CommandRunner,
    *,
    python: Path,
    target: Path,
    import_name: str,
    cwd: Path,
    force_reinstall: bool = False,
) -> str:
    cmd = [str(python), "-m", "pip", "install"]
    if force_reinstall:
        cmd.append("--force-reinstall")
    cmd.append(str(target))
    try:
        runner.run(cmd, cwd=cwd)
    except CommandError as e:
        raise InstallError(f"Installation of {target.name} failed: {e}") from e
    return import_checks(runner, python=python, import_name=import_name, cwd=cwd)


def remote_requirement(url: str, ref: str, subdir: str | None) -> str:
    req = f"git+{url}@{ref}"
    if subdir:
        req += f"#subdirectory={subdir}"
    return req


def install_remote(
    runner: CommandRunner, *, requirement: str, import_name: str, cwd: Path
) -> str:
    cmd = [
        "uv",
        "run",
        "--isolated",
        "--no-project",
        "--with",
        requirement,
        "python",
        "-I",
        "-c",
        version_probe(import_name),
    ]
    try:
        res = runner.run(cmd, cwd=cwd)
    except CommandError as e:
        raise InstallError(f"Remote install of {requirement} failed: {e}") from e
    version = parse_version(res.output)
    if not version:
        raise InstallError(f"Remote install of {requirement} reported no version")
    return version


def run_install_script(
    runner: CommandRunner, *, checkout_dir: Path, script: str, ref: str
) -> None:
    if not (checkout_dir / script).is_file():
        raise InstallError(f"Installer script not found: {script}")
    try:
        runner.run(["bash", script, ref], cwd=checkout_dir)
    except CommandError as e:
        raise InstallError(f"Installer script {script} failed for {ref}: {e}") from e
