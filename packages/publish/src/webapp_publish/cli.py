from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from webapp_publish import __version__
from webapp_publish.build import BuildInvoker
from webapp_publish.core import (
    PartialUploadFailure,
    PublishError,
    Settings,
    VersionConflict,
    bind,
    clear_bindings,
    configure_logging,
    get_logger,
    load_settings,
    new_run_id,
)
from webapp_publish.models import PublishRequest
from webapp_publish.publisher import Builder, publish
from webapp_publish.store import ObjectStore, S3Gateway

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="webapp-publish",
        description=(
            "Build a web app and upload its js/css to S3 under a versioned path."
        ),
    )
    p.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {__version__}"
    )
    p.add_argument("--s3-bucket", default=None, help="S3 bucket to upload to")
    p.add_argument(
        "--s3-path",
        default=None,
        help="Path on the S3 bucket to upload to (pass '' for the bucket root)",
    )
    p.add_argument(
        "--local-path", default=None, help="Path of local js/css files to upload"
    )
    p.add_argument(
        "--app-version",
        default=None,
        help="Override app version, typically read from package.json if not set",
    )
    p.add_argument(
        "--public-url-base",
        default=None,
        help="Needed so the main script can reference the other chunks",
    )
    p.add_argument(
        "--source-maps",
        action="store_true",
        default=False,
        help="Also publish .js.map/.css.map files (defaults to no)",
    )
    p.add_argument(
        "-f",
        "--force",
        action="store_true",
        default=False,
        help="Upload this version even if it already exists",
    )
    p.add_argument(
        "--project-root",
        default=None,
        help=(
            "Directory holding package.json; also the build's working directory. "
            "If omitted: WEBAPP_PUBLISH_PROJECT_ROOT or the nearest parent of the cwd."
        ),
    )
    return p


def _make_collaborators(
    settings: Settings, project_root: Path | None
) -> tuple[ObjectStore, Builder]:
    store = S3Gateway.from_settings(settings)
    builder = BuildInvoker(
        settings.build_command, cwd=project_root, env_var=settings.public_url_env
    )
    return store, builder


def _report_path(settings: Settings, run_id: str) -> Path | None:
    if settings.run_root is None:
        return None
    return Path(settings.run_root) / run_id / "publish_report.json"


def _print_failure(exc: PublishError) -> None:
    if isinstance(exc, VersionConflict):
        console.print(
            Panel.fit(
                Text(
                    f"{exc}\nIf you wish to overwrite it please specify the --force "
                    "option and run the script again.",
                    style="yellow",
                ),
                title="Aborted",
            )
        )
        return

    body = f"[{exc.stage}] {exc}"
    if isinstance(exc, PartialUploadFailure):
        body += (
            "\nWARNING: the version path is now in a mixed state; "
            "re-run with --force once the cause is fixed."
        )
    console.print(Panel.fit(Text(body, style="bold red"), title="Publish failed"))


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    s = load_settings()
    configure_logging(level=s.log_level, fmt=s.log_format)
    log = get_logger("webapp_publish")

    run_id = new_run_id()
    clear_bindings()
    bind(run_id=run_id)

    try:
        request = PublishRequest.from_options(vars(args))
    except PublishError as e:
        log.error("Invalid configuration", error=str(e))
        _print_failure(e)
        return e.exit_code

    project_root = Path(args.project_root) if args.project_root else None
    try:
        store, builder = _make_collaborators(s, project_root)
    except PublishError as e:
        log.error("Publish failed", stage=e.stage, error=str(e))
        _print_failure(e)
        return e.exit_code

    console.print(
        Panel.fit(
            Text(
                f"webapp-publish {__version__}\nrun_id={run_id}\n"
                f"from={request.local_path}\nto={request.destination}",
                style="bold",
            ),
            title="Publish",
        )
    )

    try:
        result, report_path = publish(
            request,
            store=store,
            builder=builder,
            settings=s,
            project_root=project_root,
            run_id=run_id,
            logger=log,
        )
    except VersionConflict as e:
        _print_failure(e)
        return e.exit_code
    except PublishError as e:
        log.error("Publish failed", stage=e.stage, error=str(e))
        _print_failure(e)
        report = _report_path(s, run_id)
        if report is not None:
            console.print(f"report: {report}")
        return e.exit_code
    except Exception:
        log.exception("Publish crashed")
        return 1

    tbl = Table(title="Result", show_header=False, box=None)
    tbl.add_row("status", "[green]ok[/green]")
    tbl.add_row("version", result.version)
    tbl.add_row("uploaded", str(len(result.uploaded)))
    if result.overwritten:
        tbl.add_row("overwritten", "[yellow]yes[/yellow]")
    if report_path is not None:
        tbl.add_row("report", str(report_path))
    console.print(tbl)

    console.print("Deployment complete")
    if result.main_script_url:
        console.print("Main script can now be found here:")
        console.print(
            result.main_script_url, markup=False, highlight=False, soft_wrap=True
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
