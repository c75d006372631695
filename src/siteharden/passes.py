"""Pass runners: apply each transformation to the whole build output.

Each runner scans the output directory, rewrites files one at a time and
returns a :class:`PassReport`. Runners are independent; ``run_build`` only
sequences them in the order their data dependencies require (assets are
extracted before anything is hashed, styles are collapsed before CSP hashes
are computed).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path

from siteharden.csp.policy import ContentSecurityPolicy, build_policy
from siteharden.csp.publisher import NginxPolicyPublisher
from siteharden.csp.scanner import scan_corpus
from siteharden.ingest.corpus import (
    MissingInputError,
    ensure_output_dir,
    html_files,
    script_files,
    stylable_files,
)
from siteharden.ingest.file_io import rewrite_text_file
from siteharden.model.options import PipelineOptions
from siteharden.model.results import CspSources, PassReport, PublishResult
from siteharden.transform.data_uris import AssetStore, extract_data_uris
from siteharden.transform.icons import convert_icons, update_manifest
from siteharden.transform.inline_styles import collapse_inline_styles
from siteharden.transform.integrity import IntegrityCache, inject_integrity
from siteharden.transform.svg import build_svg_processor
from siteharden.types import PolicyPublisher, ProgressCallback

logger = logging.getLogger(__name__)


def _safe_emit(on_progress: ProgressCallback, event: str, payload: dict[str, int | str]) -> None:
    if on_progress is None:
        return
    with suppress(Exception):
        on_progress(event, payload)


def _collect(options: PipelineOptions, finder: Callable[[Path], list[Path]], kind: str) -> list[Path]:
    output_dir = ensure_output_dir(options.output_dir)
    files = finder(output_dir)
    if not files:
        if options.require_input:
            raise MissingInputError(f"No {kind} files found under {output_dir}")
        logger.info("No %s files found.", kind)
    return files


def _rewrite_corpus(
    name: str,
    files: list[Path],
    transform: Callable[[Path, str], tuple[str, int]],
    on_progress: ProgressCallback,
) -> PassReport:
    report = PassReport(name=name)
    _safe_emit(on_progress, "pass:start", {"pass": name, "files": len(files)})
    for path in files:
        count = rewrite_text_file(path, lambda text, p=path: transform(p, text))
        report.record_file(path, count)
        if count:
            logger.info("Updated %s", path)
        _safe_emit(on_progress, "file:processed", {"path": str(path)})
    _safe_emit(
        on_progress,
        "pass:done",
        {"pass": name, "files": report.files_modified, "replacements": report.replacements},
    )
    return report


def run_extract_assets(options: PipelineOptions, on_progress: ProgressCallback = None) -> PassReport:
    """Move data-URI images out of CSS and HTML into content-addressed files."""
    files = _collect(options, stylable_files, "CSS/HTML")
    store = AssetStore(
        assets_dir=options.assets_dir,
        url_prefix=options.assets_url_prefix,
        svg_processor=build_svg_processor(
            optimize=options.optimize_svg, repair=options.repair_svg_viewbox
        ),
    )

    def _transform(path: Path, text: str) -> tuple[str, int]:
        return extract_data_uris(text, store, is_html=path.suffix.lower() == ".html", source=str(path))

    report = _rewrite_corpus("extract-assets", files, _transform, on_progress)
    report.assets_written = len(store.written)
    logger.info("Extraction complete. Extracted %d unique assets.", report.assets_written)
    return report


def run_collapse_styles(options: PipelineOptions, on_progress: ProgressCallback = None) -> PassReport:
    """Replace inline style attributes with generated classes."""
    files = _collect(options, html_files, "HTML")
    nonce = options.nonce_placeholder
    report = _rewrite_corpus(
        "collapse-styles",
        files,
        lambda _path, text: collapse_inline_styles(text, nonce),
        on_progress,
    )
    logger.info(
        "Modified %d files. Replaced %d inline style attributes.",
        report.files_modified,
        report.replacements,
    )
    return report


def run_sri(options: PipelineOptions, on_progress: ProgressCallback = None) -> PassReport:
    """Add integrity/crossorigin attributes to local scripts and stylesheets."""
    files = _collect(options, html_files, "HTML")
    cache = IntegrityCache(options.output_dir)
    report = _rewrite_corpus(
        "sri", files, lambda _path, text: inject_integrity(text, cache), on_progress
    )
    logger.info(
        "SRI injection complete. Modified %d files, updated %d tags (%d distinct assets).",
        report.files_modified,
        report.replacements,
        len(cache),
    )
    return report


@dataclass
class CspRun:
    report: PassReport
    sources: CspSources
    policy: ContentSecurityPolicy | None
    published: PublishResult | None


def default_publisher(options: PipelineOptions) -> NginxPolicyPublisher:
    return NginxPolicyPublisher(
        options.nginx_conf,
        mode=options.csp_mode,
        reload_command=options.reload_command if options.reload else None,
    )


def run_csp(
    options: PipelineOptions,
    publisher: PolicyPublisher | None = None,
    on_progress: ProgressCallback = None,
) -> CspRun:
    """Hash inline content, assemble the policy and hand it to ``publisher``.

    Raises PolicyPublishError when the publisher fails.
    """
    files = _collect(options, html_files, "HTML")
    report = PassReport(name="csp")
    if not files:
        return CspRun(report=report, sources=CspSources(), policy=None, published=None)

    extra = script_files(options.output_dir) if options.hash_all_scripts else []
    if extra:
        logger.info("Found %d JS files to hash.", len(extra))
    _safe_emit(on_progress, "pass:start", {"pass": "csp", "files": len(files)})
    sources = scan_corpus(files, options.output_dir, extra_scripts=extra, on_progress=on_progress)
    report.files_scanned = len(files)
    _safe_emit(on_progress, "pass:done", {"pass": "csp", "files": len(files)})

    logger.info("Found %d unique style hashes.", len(sources.style_hashes))
    logger.info("Found %d unique script hashes.", len(sources.script_hashes))
    logger.info("Found %d unique image domains.", len(sources.image_hosts))
    logger.debug("Style hashes: %s", sources.style_source)
    logger.debug("Script hashes: %s", sources.script_source)
    logger.debug("Image domains: %s", " ".join(sources.image_origins))

    policy = build_policy(
        sources,
        nonce_token=options.nonce_token,
        site_domain=options.site_domain,
        connect_origins=options.connect_origins,
        report_uri=options.report_uri,
        strict_dynamic=options.uses_strict_dynamic,
    )
    publisher = publisher or default_publisher(options)
    published = publisher.apply(policy)
    return CspRun(report=report, sources=sources, policy=policy, published=published)


def run_icons(options: PipelineOptions, *, quality: int = 80) -> PassReport:
    """Convert PNG icons to WebP and point the manifest at them."""
    output_dir = ensure_output_dir(options.output_dir)
    report = PassReport(name="convert-icons")
    converted = convert_icons(output_dir, quality=quality)
    report.assets_written = len(converted)
    if update_manifest(output_dir):
        report.record_file(output_dir / "site.webmanifest", 1)
    logger.info("Icon conversion complete.")
    return report


@dataclass
class BuildRun:
    reports: list[PassReport]
    csp: CspRun


def run_build(
    options: PipelineOptions,
    *,
    publisher: PolicyPublisher | None = None,
    icons: bool = False,
    on_progress: ProgressCallback = None,
) -> BuildRun:
    """Run every pass in dependency order."""
    reports: list[PassReport] = []
    if icons:
        reports.append(run_icons(options))
    reports.append(run_extract_assets(options, on_progress))
    reports.append(run_collapse_styles(options, on_progress))
    csp = run_csp(options, publisher, on_progress)
    reports.append(csp.report)
    reports.append(run_sri(options, on_progress))
    return BuildRun(reports=reports, csp=csp)


__all__ = [
    "BuildRun",
    "CspRun",
    "default_publisher",
    "run_build",
    "run_collapse_styles",
    "run_csp",
    "run_extract_assets",
    "run_icons",
    "run_sri",
]
