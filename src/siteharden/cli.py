"""CLI interface for siteharden."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from rich.logging import RichHandler

from siteharden import __version__
from siteharden.csp.publisher import PolicyPublishError
from siteharden.ingest.corpus import MissingInputError
from siteharden.model.options import DEFAULT_NONCE_PLACEHOLDER, CspUpdateMode, PipelineOptions
from siteharden.model.results import PassReport, PublishStatus
from siteharden.passes import (
    CspRun,
    run_build,
    run_collapse_styles,
    run_csp,
    run_extract_assets,
    run_icons,
    run_sri,
)
from siteharden.transform.icons import (
    DEFAULT_FAVICON_SIZE,
    DEFAULT_IMAGE_WIDTH,
    DEFAULT_WEBP_QUALITY,
    make_favicon,
    optimize_images,
)
from siteharden.ui.progress import ProgressReporter

logger = logging.getLogger(__name__)

T = TypeVar("T")

app = typer.Typer(
    name="siteharden",
    help="Post-build hardening passes for static site output (data URIs, inline styles, CSP, SRI).",
    no_args_is_help=True,
)

OutputDir = Annotated[
    Path,
    typer.Argument(
        envvar="DIST_DIR",
        help="Build output directory (default: $DIST_DIR or dist)",
        show_default=False,
    ),
]
RequireInput = Annotated[
    bool,
    typer.Option(
        "--require-input/--allow-empty",
        help="Fail when the output directory holds no matching files (default: allow empty)",
    ),
]
NginxConf = Annotated[
    Path | None,
    typer.Option(
        "--nginx-conf",
        envvar="SITEHARDEN_NGINX_CONF",
        help="nginx snippet holding the Content-Security-Policy header",
    ),
]
CspMode = Annotated[
    str,
    typer.Option("--mode", help="Config rewrite: 'header' (whole line) or 'directives'"),
]
Reload = Annotated[
    bool,
    typer.Option("--reload/--no-reload", help="Reload nginx after updating the config (default: yes)"),
]
SiteDomain = Annotated[
    str | None,
    typer.Option(
        "--site-domain",
        envvar="SITEHARDEN_SITE_DOMAIN",
        help="Domain allowed as https://*.<domain> in img-src",
    ),
]
ConnectSrc = Annotated[
    list[str] | None,
    typer.Option("--connect-src", help="Extra connect-src origin (repeatable)"),
]
HashAllScripts = Annotated[
    bool,
    typer.Option(
        "--hash-all-scripts/--no-hash-all-scripts",
        help="Also whitelist every bundled .js file by hash (default: no)",
    ),
]
StrictDynamic = Annotated[
    bool | None,
    typer.Option(
        "--strict-dynamic/--no-strict-dynamic",
        help="Add 'strict-dynamic' to script-src (default: on in directives mode or with --hash-all-scripts)",
        show_default=False,
    ),
]


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, markup=False)],
        force=True,
    )


def _run(action: Callable[[], T]) -> T:
    """Run a pass and turn fatal pipeline errors into exit code 1."""
    try:
        return action()
    except (MissingInputError, PolicyPublishError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc


def _options(output_dir: Path, **overrides: object) -> PipelineOptions:
    try:
        return PipelineOptions.from_env(output_dir=output_dir, **overrides)
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc


def _summarize(report: PassReport) -> None:
    typer.echo(
        f"✅ {report.name}: {report.files_modified}/{report.files_scanned} files modified, "
        f"{report.replacements} replacements"
        + (f", {report.assets_written} assets written" if report.assets_written else "")
    )


def _summarize_csp(run: CspRun) -> None:
    _summarize(run.report)
    if run.policy is not None:
        typer.echo(f"🔐 Content-Security-Policy: {run.policy.header_value()}")
    if run.published is None:
        return
    if run.published.status is PublishStatus.SKIPPED:
        typer.echo(f"⏭️  Skipping nginx update: {run.published.message}")
    else:
        suffix = " and reloaded nginx" if run.published.reloaded else ""
        typer.echo(f"📝 Updated {run.published.target}{suffix}")


@app.command("extract-assets")
def extract_assets(
    output_dir: OutputDir = Path("dist"),
    optimize_svg: Annotated[
        bool,
        typer.Option("--optimize-svg/--no-optimize-svg", help="Optimize extracted SVGs with scour"),
    ] = False,
    repair_viewbox: Annotated[
        bool,
        typer.Option(
            "--repair-viewbox/--no-repair-viewbox",
            help="Grow SVG viewBoxes that clip their content",
        ),
    ] = False,
    require_input: RequireInput = False,
) -> None:
    """Extract data-URI images from CSS and HTML into assets/extracted/."""
    options = _options(
        output_dir,
        optimize_svg=optimize_svg,
        repair_svg_viewbox=repair_viewbox,
        require_input=require_input,
    )
    with ProgressReporter() as pr:
        report = _run(lambda: run_extract_assets(options, on_progress=pr.emit))
    _summarize(report)


@app.command("collapse-styles")
def collapse_styles(
    output_dir: OutputDir = Path("dist"),
    nonce_placeholder: Annotated[
        str,
        typer.Option("--nonce-placeholder", help="Nonce value written on the injected <style>"),
    ] = DEFAULT_NONCE_PLACEHOLDER,
    require_input: RequireInput = False,
) -> None:
    """Move inline style attributes into one nonce-protected <style> block per page."""
    options = _options(output_dir, nonce_placeholder=nonce_placeholder, require_input=require_input)
    with ProgressReporter() as pr:
        report = _run(lambda: run_collapse_styles(options, on_progress=pr.emit))
    _summarize(report)


@app.command()
def csp(
    output_dir: OutputDir = Path("dist"),
    nginx_conf: NginxConf = None,
    mode: CspMode = CspUpdateMode.HEADER.value,
    reload: Reload = True,
    site_domain: SiteDomain = None,
    connect_src: ConnectSrc = None,
    hash_all_scripts: HashAllScripts = False,
    strict_dynamic: StrictDynamic = None,
    require_input: RequireInput = False,
) -> None:
    """Compute CSP hashes and update the nginx security headers.

    Examples:

        # CI: compute and print the policy (no nginx snippet present)
        siteharden csp dist

        # Production: rewrite the snippet and reload nginx
        siteharden csp dist --nginx-conf /etc/nginx/snippets/security_headers.conf
    """
    options = _options(
        output_dir,
        nginx_conf=nginx_conf,
        csp_mode=mode,
        reload=reload,
        site_domain=site_domain,
        connect_origins=tuple(connect_src) if connect_src else None,
        hash_all_scripts=hash_all_scripts,
        strict_dynamic=strict_dynamic,
        require_input=require_input,
    )
    with ProgressReporter() as pr:
        run = _run(lambda: run_csp(options, on_progress=pr.emit))
    _summarize_csp(run)


@app.command()
def sri(
    output_dir: OutputDir = Path("dist"),
    require_input: RequireInput = False,
) -> None:
    """Add integrity and crossorigin attributes to local scripts and stylesheets."""
    options = _options(output_dir, require_input=require_input)
    with ProgressReporter() as pr:
        report = _run(lambda: run_sri(options, on_progress=pr.emit))
    _summarize(report)


@app.command("convert-icons")
def convert_icons(
    output_dir: OutputDir = Path("dist"),
    quality: Annotated[int, typer.Option("--quality", min=1, max=100, help="WebP quality")] = DEFAULT_WEBP_QUALITY,
) -> None:
    """Convert icons/*.png to WebP and update site.webmanifest."""
    options = _options(output_dir)
    report = _run(lambda: run_icons(options, quality=quality))
    _summarize(report)


@app.command("optimize-images")
def optimize_images_command(
    directory: Annotated[
        Path,
        typer.Argument(help="Directory holding the PNG images", exists=True, file_okay=False, dir_okay=True),
    ],
    width: Annotated[int, typer.Option("--width", min=1, help="Target width in pixels")] = DEFAULT_IMAGE_WIDTH,
    quality: Annotated[int, typer.Option("--quality", min=1, max=100, help="WebP quality")] = DEFAULT_WEBP_QUALITY,
    keep_source: Annotated[
        bool,
        typer.Option("--keep-source/--remove-source", help="Keep the original PNGs (default: remove)"),
    ] = False,
) -> None:
    """Resize blog images to a standard width and convert them to WebP."""
    try:
        written = optimize_images(directory, width=width, quality=quality, remove_source=not keep_source)
    except (OSError, ValueError) as exc:
        typer.echo(f"Error optimizing images: {exc}", err=True)
        raise typer.Exit(1) from exc
    typer.echo(f"✅ optimize-images: {len(written)} images written")


@app.command()
def favicon(
    source: Annotated[
        Path,
        typer.Argument(help="Source image", exists=True, file_okay=True, dir_okay=False, readable=True),
    ],
    dest: Annotated[Path, typer.Argument(help="Favicon to write")],
    size: Annotated[int, typer.Option("--size", min=1, help="Edge length in pixels")] = DEFAULT_FAVICON_SIZE,
) -> None:
    """Render a square favicon from an image."""
    try:
        make_favicon(source, dest, size=size)
    except (OSError, ValueError) as exc:
        typer.echo(f"Error creating favicon: {exc}", err=True)
        raise typer.Exit(1) from exc
    typer.echo(f"✅ Favicon created: {dest}")


@app.command()
def build(
    output_dir: OutputDir = Path("dist"),
    icons: Annotated[
        bool,
        typer.Option("--icons/--no-icons", help="Convert PNG icons to WebP first (default: no)"),
    ] = False,
    nginx_conf: NginxConf = None,
    mode: CspMode = CspUpdateMode.HEADER.value,
    reload: Reload = True,
    site_domain: SiteDomain = None,
    connect_src: ConnectSrc = None,
    hash_all_scripts: HashAllScripts = False,
    strict_dynamic: StrictDynamic = None,
    require_input: RequireInput = False,
) -> None:
    """Run every pass in order: extract-assets, collapse-styles, csp, sri."""
    options = _options(
        output_dir,
        nginx_conf=nginx_conf,
        csp_mode=mode,
        reload=reload,
        site_domain=site_domain,
        connect_origins=tuple(connect_src) if connect_src else None,
        hash_all_scripts=hash_all_scripts,
        strict_dynamic=strict_dynamic,
        require_input=require_input,
    )
    with ProgressReporter() as pr:
        result = _run(lambda: run_build(options, icons=icons, on_progress=pr.emit))
    for report in result.reports:
        if report is result.csp.report:
            _summarize_csp(result.csp)
        else:
            _summarize(report)


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"siteharden version {__version__}")


def version_callback(value: bool) -> None:
    """Version callback for --version flag."""
    if value:
        typer.echo(f"siteharden version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """
    siteharden - rewrite a static build in place for a strict security policy.

    Passes are idempotent and meant to run after the site generator:

    - extract-assets: data-URI images become content-addressed files
    - collapse-styles: style="..." attributes become generated classes
    - csp: inline hashes and image origins become the Content-Security-Policy
    - sri: local scripts and stylesheets get integrity attributes
    """
    configure_logging(verbose)


if __name__ == "__main__":  # pragma: no cover - executed only via `python -m`
    app()
