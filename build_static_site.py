#!/usr/bin/env python3
"""
Static site generator for a folder of markdown documents.

Features:
- Converts every document (default .md) under the input directory to a page
  (default .html) in the output directory
- Preserves directory structure; one output page per input document
- Navigation either as a flat nav bar embedded in every page or as a
  table of contents grouped by subdirectory, written to index.html
- Copies an asset subdirectory (default img/) verbatim and places a
  stylesheet at css/main.css, linked from every page

Usage:
  python build_static_site.py --input ./docs --output ./site
  python build_static_site.py --input ./docs --output ./site --nav flat --serve

Notes:
- Requires "markdown", "pymdown-extensions" and "Jinja2"
"""

from __future__ import annotations

import argparse
import logging
import logging.config
import os
import posixpath
import shutil
import stat
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

import markdown
from jinja2 import DictLoader, Environment
from markupsafe import Markup

from serve import serve_site

logger = logging.getLogger(__name__)


NAV_MODES = ("flat", "grouped")

# renderer extensions per dialect; gfm adds strikethrough and hard line breaks
DIALECTS: Dict[str, List[str]] = {
    "basic": ["extra", "sane_lists"],
    "gfm": ["extra", "sane_lists", "nl2br", "pymdownx.tilde"],
}

# ~~x~~ only; no ~x~ subscript
EXTENSION_CONFIGS: Dict[str, Dict[str, object]] = {
    "pymdownx.tilde": {"subscript": False},
}


# -- errors --
class SiteBuildError(Exception):
    """Base class for errors that abort a build."""


class ConfigError(SiteBuildError):
    pass


class DiscoveryError(SiteBuildError):
    pass


class OutputError(SiteBuildError):
    pass


class AssetError(SiteBuildError):
    pass


class OutputCollisionError(SiteBuildError):
    """Two sources map to the same output path."""


class RenderError(SiteBuildError):
    """A single document could not be rendered. Never aborts a build."""


# -- configuration --
def _is_relative_subpath(value: str) -> bool:
    p = Path(value)
    return not p.is_absolute() and ".." not in p.parts and value not in ("", ".")


@dataclass(frozen=True)
class SiteConfig:
    """Static build settings, read once at startup."""

    input_dir: Path
    output_dir: Path
    doc_ext: str = ".md"
    out_ext: str = ".html"
    nav_mode: str = "grouped"
    index_file: str = "index.html"
    asset_dir: Optional[str] = "img"
    assets_required: bool = False
    stylesheet: Optional[Path] = None
    stylesheet_dest: str = "css/main.css"
    dialect: str = "gfm"
    clean_output: bool = True
    skip_hidden: bool = False
    site_title: str = ""

    def validate(self) -> None:
        for name in ("doc_ext", "out_ext"):
            ext = getattr(self, name)
            if not ext.startswith(".") or len(ext) < 2 or "/" in ext:
                raise ConfigError(f"{name} must look like '.ext', got {ext!r}")
        if self.doc_ext == self.out_ext:
            raise ConfigError(f"document and output extension are both {self.doc_ext!r}")
        if self.nav_mode not in NAV_MODES:
            raise ConfigError(f"unknown nav mode {self.nav_mode!r} (expected one of {', '.join(NAV_MODES)})")
        if self.dialect not in DIALECTS:
            raise ConfigError(f"unknown markdown dialect {self.dialect!r} (expected one of {', '.join(DIALECTS)})")
        if self.asset_dir is not None and not _is_relative_subpath(self.asset_dir):
            raise ConfigError(f"asset dir must be a subdirectory of the input root, got {self.asset_dir!r}")
        if not _is_relative_subpath(self.stylesheet_dest):
            raise ConfigError(f"stylesheet destination must be relative to the output root, got {self.stylesheet_dest!r}")
        if not _is_relative_subpath(self.index_file) or "/" in self.index_file:
            raise ConfigError(f"index file must be a plain filename, got {self.index_file!r}")

        input_root = self.input_dir.resolve()
        output_root = self.output_dir.resolve()
        if input_root == output_root:
            raise ConfigError(f"input and output directory are the same: {input_root}")
        if self.clean_output and output_root in input_root.parents:
            raise ConfigError(f"cleaning {output_root} would delete the input directory {input_root}")


# -- markdown conversion --
class MarkdownRenderer:
    """Renders raw document bytes to an HTML fragment."""

    def __init__(self, dialect: str = "gfm"):
        if dialect not in DIALECTS:
            raise ConfigError(f"unknown markdown dialect {dialect!r}")
        self.dialect = dialect
        self._md = markdown.Markdown(extensions=DIALECTS[dialect], extension_configs=EXTENSION_CONFIGS)

    def render(self, raw: bytes) -> str:
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise RenderError(f"not valid UTF-8: {exc}") from exc
        try:
            return self._md.convert(text)
        except Exception as exc:
            raise RenderError(f"markdown conversion failed: {exc}") from exc
        finally:
            self._md.reset()


# -- data structures --
@dataclass(frozen=True)
class SourceDocument:
    """A document found by the discovery pass."""

    path: Path
    rel_dir: str
    name: str


@dataclass(frozen=True)
class Page:
    """One converted document, ready to be written."""

    title: str
    content: str
    rel_dir: str
    output_filename: str

    @property
    def output_relpath(self) -> str:
        return posixpath.normpath(posixpath.join(self.rel_dir, self.output_filename))

    def destination(self, output_root: Path) -> Path:
        return output_root / self.rel_dir / self.output_filename


@dataclass(frozen=True)
class Failure:
    """A per-item error that was logged and skipped."""

    path: Path
    operation: str
    error: str

    def __str__(self) -> str:
        return f"{self.operation} {self.path}: {self.error}"


@dataclass(frozen=True)
class NavLink:
    href: str
    label: str


@dataclass(frozen=True)
class NavGroup:
    rel_dir: str
    heading: str
    links: Tuple[NavLink, ...]


@dataclass
class BuildReport:
    pages: List[Page] = field(default_factory=list)
    written: List[Path] = field(default_factory=list)
    assets: List[Path] = field(default_factory=list)
    failures: List[Failure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


# -- helpers: scanning --
def is_document(name: str, doc_ext: str) -> bool:
    return name.endswith(doc_ext) and len(name) > len(doc_ext)


def discover(config: SiteConfig) -> List[SourceDocument]:
    """Walk the input tree once and return its documents in a stable order.

    Directories and files are visited sorted by name, so the result is
    ordered by relative path (files of a directory before its subdirectories).
    Hidden entries are skipped only when config.skip_hidden is set. A
    subdirectory that cannot be listed is logged and left out; an unreadable
    root is fatal.
    """
    input_root = config.input_dir
    if not input_root.is_dir():
        raise DiscoveryError(f"input directory not found: {input_root}")
    try:
        with os.scandir(input_root):
            pass
    except OSError as exc:
        raise DiscoveryError(f"cannot read input directory {input_root}: {exc}") from exc

    output_root = config.output_dir.resolve()

    def _on_error(exc: OSError) -> None:
        logger.error("Skipping unreadable directory %s: %s", exc.filename, exc.strerror or exc)

    documents: List[SourceDocument] = []
    for dirpath, dirnames, filenames in os.walk(input_root, onerror=_on_error):
        current_dir = Path(dirpath)
        # never walk into the output tree when it lives inside the input
        dirnames[:] = sorted(
            d for d in dirnames
            if not (config.skip_hidden and d.startswith(".")) and (current_dir / d).resolve() != output_root
        )
        rel_dir = current_dir.relative_to(input_root).as_posix()
        for fname in sorted(filenames):
            if (config.skip_hidden and fname.startswith(".")) or not is_document(fname, config.doc_ext):
                continue
            documents.append(SourceDocument(path=current_dir / fname, rel_dir=rel_dir, name=fname))

    logger.debug("Discovered %d documents under %s", len(documents), input_root)
    return documents


# -- helpers: page records --
def build_page(raw: bytes, rel_dir: str, filename: str, config: SiteConfig, renderer: MarkdownRenderer) -> Page:
    """Turn one document's bytes into a Page; RenderError propagates."""
    stem = filename[: -len(config.doc_ext)]
    return Page(
        title=stem.strip(),
        content=renderer.render(raw),
        rel_dir=rel_dir or ".",
        output_filename=stem + config.out_ext,
    )


def load_pages(documents: Iterable[SourceDocument], config: SiteConfig, renderer: MarkdownRenderer) -> Tuple[List[Page], List[Failure]]:
    pages: List[Page] = []
    failures: List[Failure] = []
    for doc in documents:
        try:
            # titles, hrefs and pages are UTF-8; os.walk hands back undecodable names as surrogates
            posixpath.join(doc.rel_dir, doc.name).encode("utf-8")
        except UnicodeEncodeError:
            logger.error("Skipping %r: file name is not valid UTF-8", doc.path)
            failures.append(Failure(doc.path, "read", "file name is not valid UTF-8"))
            continue
        try:
            raw = doc.path.read_bytes()
        except OSError as exc:
            logger.error("Could not read %s: %s", doc.path, exc)
            failures.append(Failure(doc.path, "read", str(exc)))
            continue
        try:
            pages.append(build_page(raw, doc.rel_dir, doc.name, config, renderer))
        except RenderError as exc:
            logger.error("Could not render %s: %s", doc.path, exc)
            failures.append(Failure(doc.path, "render", str(exc)))
    return pages, failures


def check_collisions(pages: Iterable[Page], reserved: Optional[Dict[str, str]] = None) -> None:
    """Raise OutputCollisionError if two outputs share a destination.

    `reserved` maps output-relative paths already claimed by something other
    than a page (index file, stylesheet, copied assets) to a description.
    """
    claimed: Dict[str, str] = dict(reserved or {})
    for page in pages:
        key = page.output_relpath
        source = f"document {posixpath.join(page.rel_dir, page.title)!r}"
        if key in claimed:
            raise OutputCollisionError(f"{source} and {claimed[key]} both write {key}")
        claimed[key] = source


def reserve(reserved: Dict[str, str], relpath: str, owner: str) -> None:
    """Claim an output-relative path for a non-page output, or raise if taken."""
    key = posixpath.normpath(relpath)
    if key in reserved:
        raise OutputCollisionError(f"{owner} and {reserved[key]} both write {key}")
    reserved[key] = owner


# -- helpers: navigation --
def _href(relpath: str) -> str:
    return quote(os.fsencode(relpath), safe="/")


def nav_links(pages: Iterable[Page]) -> List[NavLink]:
    """Flat navigation: one absolute link per page, in discovery order."""
    return [NavLink(href="/" + _href(p.output_relpath), label=p.title) for p in pages]


def group_pages(pages: Iterable[Page]) -> List[NavGroup]:
    """Grouped navigation: pages partitioned by directory, groups sorted by directory.

    Links are relative to the output root; members keep discovery order.
    """
    grouped: Dict[str, List[NavLink]] = {}
    for p in pages:
        grouped.setdefault(p.rel_dir, []).append(NavLink(href=_href(p.output_relpath), label=p.title))
    return [
        NavGroup(rel_dir=rel_dir, heading=posixpath.basename(rel_dir), links=tuple(links))
        for rel_dir, links in sorted(grouped.items())
    ]


# -- helpers: HTML generation --
PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
    <link rel="stylesheet" href="{{ stylesheet_href }}">
</head>
<body>
    <div class="container">
{% if nav %}{{ nav }}
{% endif %}{{ content }}
    </div>
</body>
</html>
"""

NAV_TEMPLATE = """<nav class="site-nav">
    <ul>
    {%- for link in links %}
        <li><a href="{{ link.href }}">{{ link.label }}</a></li>
    {%- endfor %}
    </ul>
</nav>"""

INDEX_TEMPLATE = """<h1>Table of Contents</h1>
<ul>
{%- for group in groups %}
    <li>{{ group.heading }}
    <ul>
    {%- for link in group.links %}
        <li><a href="{{ link.href }}">{{ link.label }}</a></li>
    {%- endfor %}
    </ul>
    </li>
{%- endfor %}
</ul>"""

DEFAULT_STYLESHEET = """:root {
    font-family: Inter, sans-serif;
    font-feature-settings: 'liga' 1, 'calt' 1; /* fix for Chrome */
    color: #404040;
}
@supports (font-variation-settings: normal) {
    :root { font-family: InterVariable, sans-serif; }
}
body {
    padding: 20px;
}
h1, h2, h3, h4, h5, h6 {
    color: #404040;
}
a {
    color: #404040;
    text-decoration: none;
}
a:hover {
    font-weight: bold;
}
.site-nav ul {
    list-style: none;
    padding: 0;
    margin: 0 0 1.5rem 0;
}
.site-nav li {
    display: inline-block;
    margin-right: 1rem;
}
"""


def make_environment() -> Environment:
    """Jinja environment with the page, nav and index templates; autoescaped."""
    return Environment(
        loader=DictLoader({"page.html": PAGE_TEMPLATE, "nav.html": NAV_TEMPLATE, "index.html": INDEX_TEMPLATE}),
        autoescape=True,
    )


def _page_title(title: str, site_title: str) -> str:
    return f"{title} · {site_title}" if site_title else title


def render_page_html(env: Environment, title: str, content_html: str, config: SiteConfig, nav_html: str = "") -> str:
    return env.get_template("page.html").render(
        title=_page_title(title, config.site_title),
        stylesheet_href="/" + _href(Path(config.stylesheet_dest).as_posix()),
        nav=Markup(nav_html),
        content=Markup(content_html),
    )


def render_nav(links: List[NavLink], env: Environment) -> str:
    return env.get_template("nav.html").render(links=links)


def write_page(page: Page, output_root: Path, env: Environment, config: SiteConfig, nav_html: str = "") -> Path:
    dest = page.destination(output_root)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(render_page_html(env, page.title, page.content, config, nav_html), encoding="utf-8")
    return dest


def write_pages(pages: Iterable[Page], output_root: Path, env: Environment, config: SiteConfig, nav_html: str = "") -> Tuple[List[Path], List[Failure]]:
    """Write every page; a page that fails is logged and the rest still get written."""
    written: List[Path] = []
    failures: List[Failure] = []
    for page in pages:
        dest = page.destination(output_root)
        try:
            written.append(write_page(page, output_root, env, config, nav_html))
        except (OSError, UnicodeError) as exc:
            logger.error("Could not write %s: %s", dest, exc)
            failures.append(Failure(dest, "write", str(exc)))
            continue
        logger.debug("Wrote %s", dest)
    return written, failures


def write_index(groups: List[NavGroup], output_root: Path, env: Environment, config: SiteConfig) -> Path:
    """Write the grouped table of contents as a standalone page at the output root."""
    body = env.get_template("index.html").render(groups=groups)
    dest = output_root / config.index_file
    dest.write_text(render_page_html(env, "Table of Contents", body, config), encoding="utf-8")
    return dest


# -- helpers: asset copying --
def copy_tree(src: Path, dst: Path) -> Tuple[List[Path], List[Failure]]:
    """Recursively copy src into dst, keeping permissions.

    Existing files are overwritten. A file or subdirectory that fails is
    logged and skipped; the rest of the tree is still copied.
    """
    copied: List[Path] = []
    failures: List[Failure] = []
    try:
        dst.mkdir(parents=True, exist_ok=True)
        shutil.copymode(src, dst)
        entries = sorted(os.scandir(src), key=lambda e: e.name)
    except OSError as exc:
        logger.error("Could not copy directory %s: %s", src, exc)
        return copied, [Failure(src, "copy", str(exc))]

    for entry in entries:
        src_path = Path(entry.path)
        dst_path = dst / entry.name
        if entry.is_dir():
            sub_copied, sub_failures = copy_tree(src_path, dst_path)
            copied.extend(sub_copied)
            failures.extend(sub_failures)
            continue
        try:
            shutil.copy2(src_path, dst_path)
        except OSError as exc:
            logger.error("Could not copy %s: %s", src_path, exc)
            failures.append(Failure(src_path, "copy", str(exc)))
            continue
        copied.append(dst_path)
    return copied, failures


def copy_assets(config: SiteConfig) -> Tuple[List[Path], List[Failure]]:
    if config.asset_dir is None:
        return [], []
    src = config.input_dir / config.asset_dir
    if not src.is_dir():
        if config.assets_required:
            raise AssetError(f"asset directory not found: {src}")
        logger.info("No asset directory at %s, skipping", src)
        return [], []
    return copy_tree(src, config.output_dir / config.asset_dir)


def write_stylesheet(config: SiteConfig) -> Path:
    dest = config.output_dir / config.stylesheet_dest
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        if config.stylesheet is None:
            dest.write_text(DEFAULT_STYLESHEET, encoding="utf-8")
        elif not config.stylesheet.is_file():
            raise AssetError(f"stylesheet not found: {config.stylesheet}")
        else:
            shutil.copy2(config.stylesheet, dest)
    except OSError as exc:
        raise AssetError(f"could not write stylesheet {dest}: {exc}") from exc
    return dest


# -- output directory --
def _handle_remove_readonly(func, path, exc):
    # clear read-only bit then retry once
    os.chmod(path, stat.S_IWRITE)
    func(path)


def prepare_output(output_root: Path, clean: bool) -> None:
    try:
        if clean and output_root.exists():
            if sys.version_info >= (3, 12):
                shutil.rmtree(output_root, onexc=_handle_remove_readonly)
            else:
                shutil.rmtree(output_root, onerror=_handle_remove_readonly)
        output_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputError(f"could not prepare output directory {output_root}: {exc}") from exc


# -- build --
def _output_relpath(path: Path, output_root: Path) -> str:
    return path.relative_to(output_root).as_posix()


def build_site(config: SiteConfig, renderer: Optional[MarkdownRenderer] = None) -> BuildReport:
    """Run the whole pipeline. Fatal problems raise SiteBuildError; everything
    else ends up in the report's failures."""
    config.validate()
    renderer = renderer or MarkdownRenderer(config.dialect)
    env = make_environment()
    output_root = config.output_dir
    report = BuildReport()

    documents = discover(config)
    prepare_output(output_root, config.clean_output)

    report.assets, failures = copy_assets(config)
    report.failures.extend(failures)

    reserved = {_output_relpath(p, output_root): f"asset {_output_relpath(p, output_root)!r}" for p in report.assets}
    reserve(reserved, Path(config.stylesheet_dest).as_posix(), "the stylesheet")
    if config.nav_mode == "grouped":
        reserve(reserved, config.index_file, "the table of contents")
    write_stylesheet(config)

    report.pages, failures = load_pages(documents, config, renderer)
    report.failures.extend(failures)
    check_collisions(report.pages, reserved)

    nav_html = render_nav(nav_links(report.pages), env) if config.nav_mode == "flat" else ""
    report.written, failures = write_pages(report.pages, output_root, env, config, nav_html)
    report.failures.extend(failures)

    if config.nav_mode == "grouped":
        try:
            write_index(group_pages(report.pages), output_root, env, config)
        except OSError as exc:
            dest = output_root / config.index_file
            logger.error("Could not write index %s: %s", dest, exc)
            report.failures.append(Failure(dest, "write", str(exc)))

    return report


# -- CLI --
def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a static site from a folder of markdown documents.")
    parser.add_argument("--input", type=Path, default=Path("./docs"), help="Folder with the markdown documents (default: ./docs)")
    parser.add_argument("--output", type=Path, default=Path("./site"), help="Output folder for the generated site (default: ./site)")
    parser.add_argument("--nav", choices=NAV_MODES, default="grouped", help="Flat nav bar on every page, or a grouped index.html")
    parser.add_argument("--doc-ext", default=".md", help="Document extension (default: .md)")
    parser.add_argument("--out-ext", default=".html", help="Output extension (default: .html)")
    parser.add_argument("--assets", default="img", help="Asset subdirectory copied verbatim (default: img)")
    parser.add_argument("--no-assets", action="store_true", help="Do not copy an asset directory")
    parser.add_argument("--require-assets", action="store_true", help="Fail when the asset directory is missing")
    parser.add_argument("--stylesheet", type=Path, default=None, help="Stylesheet to publish (default: built-in)")
    parser.add_argument("--stylesheet-dest", default="css/main.css", help="Stylesheet path inside the output (default: css/main.css)")
    parser.add_argument("--dialect", choices=sorted(DIALECTS), default="gfm", help="Markdown dialect (default: gfm)")
    parser.add_argument("--title", type=str, default="", help="Optional site title appended to page titles")
    parser.add_argument("--no-clean", action="store_true", help="Keep the existing output folder instead of clearing it")
    parser.add_argument("--skip-hidden", action="store_true", help="Ignore files and folders whose name starts with a dot")
    parser.add_argument("--strict", action="store_true", help="Exit with status 2 when any document or asset failed")
    parser.add_argument("--serve", type=int, nargs="?", const=8000, default=None, metavar="PORT", help="Serve the site after building (default port 8000)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every written page")
    return parser.parse_args(argv)


def configure_logging(verbose: bool = False) -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"plain": {"format": "%(levelname)s %(name)s: %(message)s"}},
            "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "plain"}},
            "root": {"level": "DEBUG" if verbose else "INFO", "handlers": ["console"]},
        }
    )


def config_from_args(args: argparse.Namespace) -> SiteConfig:
    return SiteConfig(
        input_dir=args.input.expanduser().resolve(),
        output_dir=args.output.expanduser().resolve(),
        doc_ext=args.doc_ext,
        out_ext=args.out_ext,
        nav_mode=args.nav,
        asset_dir=None if args.no_assets else args.assets,
        assets_required=args.require_assets,
        stylesheet=args.stylesheet.expanduser().resolve() if args.stylesheet else None,
        stylesheet_dest=args.stylesheet_dest,
        dialect=args.dialect,
        clean_output=not args.no_clean,
        skip_hidden=args.skip_hidden,
        site_title=args.title,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)
    config = config_from_args(args)

    try:
        report = build_site(config)
    except SiteBuildError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"Site generated at: {config.output_dir} ({len(report.written)} pages, {len(report.failures)} failures)")

    if args.serve is not None:
        serve_site(config.output_dir, port=args.serve)

    if args.strict and not report.ok:
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
