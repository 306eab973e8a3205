"""CLI command implementations"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from mdsite.config import CONFIG_FILE, Settings, default_config_yaml, load_config
from mdsite.core.models import BuildReport
from mdsite.core.pipeline import check_content, run_build
from mdsite.core.publish import CommandDeployer, publish
from mdsite.errors import BuildLockedError, OutputError, PipelineError, PublishError


FATAL_EXIT = 2


def _fail(msg: str, cause: Exception = None, code: int = 1) -> None:
    """Print a user-friendly error to stderr and exit."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(code)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def _echo_report(report: BuildReport) -> None:
    """Print every error and warning followed by a summary line."""
    for issue in report.errors:
        typer.echo(f"  error [{issue.kind}] {issue.path}: {issue.message}")
    for issue in report.warnings:
        typer.echo(f"  warning [{issue.kind}] {issue.path}: {issue.message}")
    typer.echo(
        f"Build {'succeeded' if report.ok else 'failed'} - "
        f"{len(report.processed)} document(s), "
        f"{report.artifact_count} artifact(s), "
        f"{len(report.errors)} error(s), "
        f"{len(report.warnings)} warning(s)"
    )


def build_cmd(
    content: Annotated[Optional[str], typer.Argument(help="Content directory")] = None,
    out: Annotated[Optional[str], typer.Option("--out-dir", help="Output directory")] = None,
    static: Annotated[Optional[str], typer.Option("--static-dir", help="Static asset directory")] = None,
    drafts: Annotated[Optional[bool], typer.Option("--drafts/--no-drafts", help="Render draft pages (preview)")] = None,
    workers: Annotated[Optional[int], typer.Option("--workers", help="Render worker threads; 0 = CPU count")] = None,
    report_file: Annotated[Optional[Path], typer.Option("--report", help="Write the build report as JSON")] = None,
    do_publish: Annotated[bool, typer.Option("--publish", help="Run deploy_cmd after a clean build")] = False,
    deploy: Annotated[Optional[str], typer.Option("--deploy-cmd", help="Deployment command; {output} = output dir")] = None,
    ):
    """Build the static site, then optionally publish it."""
    settings = _settings(overrides={
        "content_dir": content, "output_dir": out, "static_dir": static,
        "include_drafts": drafts, "workers": workers, "deploy_cmd": deploy,
    })
    if do_publish and not settings.deploy_cmd:
        _fail("--publish needs a deploy command (--deploy-cmd or deploy_cmd in config.yaml)")

    try:
        report = run_build(settings)
    except (OutputError, BuildLockedError) as e:
        _fail("Build aborted", e, code=FATAL_EXIT)
    except PipelineError as e:
        _fail(str(e), code=FATAL_EXIT)

    if report_file:
        try:
            report_file.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            _fail(f"Cannot write report to {report_file}", e, code=FATAL_EXIT)
    _echo_report(report)

    if do_publish:
        output_root = Path(settings.output_dir)
        try:
            published = publish(report, output_root, CommandDeployer(settings.deploy_cmd))
        except PublishError as e:
            _fail("Publish failed", e, code=FATAL_EXIT)
        typer.echo(f"Published {output_root}/" if published else "Publish skipped: build has errors.")

    if not report.ok:
        raise typer.Exit(report.exit_code)


def check_cmd(
    content: Annotated[Optional[str], typer.Argument(help="Content directory")] = None,
    drafts: Annotated[Optional[bool], typer.Option("--drafts/--no-drafts", help="Also check draft pages")] = None,
    ):
    """Load, render and assemble without writing anything."""
    settings = _settings(overrides={"content_dir": content, "include_drafts": drafts})
    try:
        report, site = check_content(settings)
    except PipelineError as e:
        _fail(str(e), code=FATAL_EXIT)
    _echo_report(report)
    typer.echo(f"{len(site.pages)} page(s), {len(site.listings)} listing page(s)")
    if not report.ok:
        raise typer.Exit(report.exit_code)


def tags_cmd(
    content: Annotated[Optional[str], typer.Argument(help="Content directory")] = None,
    ):
    """List the tag index: each canonical tag with its documents, newest first."""
    settings = _settings(overrides={"content_dir": content})
    try:
        report, site = check_content(settings)
    except PipelineError as e:
        _fail(str(e), code=FATAL_EXIT)
    if not site.tag_index:
        typer.echo("No tags found.")
    for tag, slugs in site.tag_index.items():
        typer.echo(f"{tag} ({len(slugs)})")
        for slug in slugs:
            typer.echo(f"  {slug}")
    if not report.ok:
        typer.echo(f"{len(report.errors)} document(s) failed to load; run 'mdsite check'.", err=True)
        raise typer.Exit(report.exit_code)


def init_cmd(
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing config.yaml")] = False,
    ):
    """Write a config.yaml with default settings and create the content directory."""
    path = Path(CONFIG_FILE)
    if path.exists() and not force:
        _fail(f"{CONFIG_FILE} already exists; use --force to overwrite")
    path.write_text(default_config_yaml(), encoding="utf-8")
    settings = Settings()
    Path(settings.content_dir).mkdir(parents=True, exist_ok=True)
    typer.echo(f"Wrote {CONFIG_FILE}; add markdown under {settings.content_dir}/")
