from __future__ import annotations

import argparse
import os
import signal
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from build_wheel_pipeline.concurrency import ProcessKeyLock
from build_wheel_pipeline.core import (
    CancellationToken,
    ConfigError,
    Settings,
    configure_logging,
    get_logger,
    load_settings,
    new_run_id,
)
from build_wheel_pipeline.pipeline.matrix import MatrixOptions, MatrixRunner
from build_wheel_pipeline.pipeline.report import MatrixReport
from build_wheel_pipeline.registry import get_pipeline_config
from build_wheel_pipeline.registry.models import PipelineConfig
from build_wheel_pipeline.stages import build_stages, publish_stages
from build_wheel_pipeline.stages.publish import (
    ArtifactStore,
    HttpArtifactStore,
    LocalArtifactStore,
)
from build_wheel_pipeline.trigger import (
    EventName,
    Trigger,
    concurrency_key,
    trigger_from_github_env,
)

console = Console()


@dataclass(frozen=True, slots=True)
class _CommonArgs:
    cmd: str
    config: Path | None
    variants: list[str] | None


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        type=Path,
        default=None,
        help=(
            "Pipeline config JSON. If omitted: uses BUILD_WHEEL_CONFIG_PATH, "
            "./config/pipeline.json, or built-in defaults."
        ),
    )
    p.add_argument(
        "--variant",
        action="append",
        dest="variants",
        help="Only run this variant (repeatable). If omitted, runs the whole matrix.",
    )


def _add_trigger_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--source",
        default=None,
        help="Local path or clone URL of the source repository (default: remote or '.').",
    )
    p.add_argument(
        "--event",
        choices=[e.value for e in EventName],
        default=EventName.workflow_dispatch.value,
        help="Trigger event (default: workflow_dispatch).",
    )
    p.add_argument(
        "--ref",
        default="refs/heads/master",
        help="Fully-qualified ref of the triggering context.",
    )
    p.add_argument(
        "--input-ref",
        default=None,
        help="Branch, tag or SHA to build on a manual dispatch (default: trunk).",
    )
    p.add_argument("--pr-number", type=int, default=None)
    p.add_argument("--pr-action", default=None)
    p.add_argument("--draft", action="store_true", help="Pull request is a draft.")
    p.add_argument("--repository", default=None, help="owner/name of the remote.")
    p.add_argument(
        "--from-github-env",
        action="store_true",
        help="Read the trigger from GITHUB_EVENT_NAME, GITHUB_REF and GITHUB_EVENT_PATH.",
    )
    p.add_argument(
        "--keep-workspace",
        action="store_true",
        help="Keep checkouts and virtual environments after the run.",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="build-wheel-pipeline")
    sub = p.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Build, verify and (on manual runs) publish")
    _add_common_args(run)
    _add_trigger_args(run)

    build = sub.add_parser("build", help="Checkout, UI and distribution build only")
    _add_common_args(build)
    _add_trigger_args(build)

    variants = sub.add_parser("variants", help="Print the variant matrix")
    _add_common_args(variants)

    sub.add_parser("prune", help="Delete expired artifacts from the local store")
    return p


def _common(args: argparse.Namespace) -> _CommonArgs:
    return _CommonArgs(
        cmd=str(args.cmd),
        config=getattr(args, "config", None),
        variants=list(args.variants) if getattr(args, "variants", None) else None,
    )


def _trigger(args: argparse.Namespace) -> Trigger:
    if args.from_github_env:
        return trigger_from_github_env(os.environ)
    return Trigger(
        event=EventName(args.event),
        ref=args.ref,
        input_ref=args.input_ref,
        repository=args.repository,
        pr_number=args.pr_number,
        pr_action=args.pr_action,
        draft=bool(args.draft),
    )


def _source(args: argparse.Namespace, trigger: Trigger, cfg: PipelineConfig) -> str:
    if args.source:
        return str(args.source)
    repository = trigger.repository or cfg.project.repository
    if repository:
        return cfg.project.remote_url_template.format(repository=repository)
    return "."


def _make_store(s: Settings) -> ArtifactStore:
    if s.artifact_store_url:
        token = s.artifact_store_token.get_secret_value() if s.artifact_store_token else None
        return HttpArtifactStore(s.artifact_store_url, token=token)
    return LocalArtifactStore(Path(s.artifact_root))


def _print_variants(cfg: PipelineConfig) -> None:
    tbl = Table(title="Variants", show_header=True)
    for col in ("name", "package_type", "install_subdir", "import_name"):
        tbl.add_column(col)
    for v in cfg.variants:
        tbl.add_row(
            v.name, v.package_type, v.install_subdir or "-", cfg.import_name_for(v)
        )
    console.print(tbl)


def _print_report(report: MatrixReport, report_path: Path) -> None:
    colour = {"success": "green", "skipped": "yellow"}.get(report.status, "red")
    tbl = Table(title="Result", show_header=True, box=None)
    for col in ("variant", "status", "state", "wheel", "url"):
        tbl.add_column(col)
    for v in report.variants:
        tbl.add_row(
            v.variant,
            v.status,
            v.final_state,
            v.wheel_name or "-",
            v.artifact_url or "-",
        )
    console.print(tbl)
    console.print(f"status: [{colour}]{report.status}[/{colour}]  ({report.decision})")
    console.print(f"report: {report_path}")


def _prune(s: Settings) -> int:
    store = LocalArtifactStore(Path(s.artifact_root))
    pruned = store.prune_expired()
    tbl = Table(title="Pruned", show_header=False, box=None)
    for name in pruned:
        tbl.add_row(name)
    console.print(tbl if pruned else "Nothing to prune")
    return 0


def _run_matrix(args: argparse.Namespace, common: _CommonArgs, s: Settings) -> int:
    log = get_logger("build_wheel_pipeline")
    cfg = get_pipeline_config(common.config or s.config_path)
    trigger = _trigger(args)
    source = _source(args, trigger, cfg)
    key = concurrency_key(trigger, cfg.triggers)
    run_id = new_run_id()

    building_only = common.cmd == "build"
    runner = MatrixRunner(
        config=cfg,
        build_stages=build_stages(verify=not building_only),
        publish_stages=[] if building_only else publish_stages(),
        options=MatrixOptions(
            work_root=Path(s.work_root),
            run_root=Path(s.run_root),
            job_timeout_s=s.job_timeout_s,
            keep_workspace=bool(args.keep_workspace) or building_only,
            github_output=s.github_output,
            step_summary=s.step_summary,
        ),
        store=None if building_only else _make_store(s),
        logger=log,
    )

    console.print(
        Panel.fit(
            Text(
                f"build-wheel-pipeline - {common.cmd}\nrun_id={run_id}\nkey={key}\nsource={source}",
                style="bold",
            ),
            title="Run",
        )
    )

    token = CancellationToken(key)

    def _on_term(signum: int, frame: object) -> None:
        token.cancel(f"received signal {signum}")

    previous = signal.signal(signal.SIGTERM, _on_term)
    try:
        with ProcessKeyLock(Path(s.run_root), key) as lock:
            log.info("Claimed concurrency key", key=key, pid=lock.pid)
            report = runner.run(
                trigger=trigger,
                source=source,
                variants=common.variants,
                token=token,
                run_id=run_id,
            )
    except KeyboardInterrupt:
        token.cancel("interrupted")
        return 130
    finally:
        signal.signal(signal.SIGTERM, previous)

    _print_report(report, Path(s.run_root) / run_id / "matrix_report.json")
    return report.exit_code


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    common = _common(args)

    s = load_settings()
    configure_logging(level=s.log_level, fmt=s.log_format)

    try:
        if common.cmd == "prune":
            return _prune(s)
        if common.cmd == "variants":
            _print_variants(get_pipeline_config(common.config or s.config_path))
            return 0
        return _run_matrix(args, common, s)
    except (ConfigError, ValidationError, KeyError) as e:
        console.print(f"[red]error:[/red] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
