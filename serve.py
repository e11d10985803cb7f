#!/usr/bin/env python3
"""
Simple HTTP server for a generated site.
Run this after building the site; pages link their stylesheet and
navigation absolutely, so they need to be served from the site root.
"""

import argparse
import functools
import http.server
import logging
import socketserver
import webbrowser
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


def make_handler(site_dir: Path):
    """Request handler class serving files from site_dir."""
    return functools.partial(http.server.SimpleHTTPRequestHandler, directory=str(site_dir))


def serve_site(site_dir: Union[str, Path] = "site", port: int = 8000, open_browser: bool = True) -> bool:
    site_path = Path(site_dir)
    if not site_path.is_dir():
        logger.error("Site directory '%s' doesn't exist. Run build_static_site.py first.", site_dir)
        return False

    with socketserver.TCPServer(("localhost", port), make_handler(site_path)) as httpd:
        url = f"http://localhost:{port}"
        print(f"Serving {site_path} at {url}")
        print("Press Ctrl+C to stop")

        if open_browser:
            webbrowser.open(url)

        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\nServer stopped.")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Serve a generated site over HTTP.")
    parser.add_argument("port", type=int, nargs="?", default=8000)
    parser.add_argument("--dir", type=Path, default=Path("site"), help="Site directory (default: ./site)")
    parser.add_argument("--no-browser", action="store_true", help="Do not open a browser window")
    args = parser.parse_args(argv)
    # build_static_site imports this module, so import its logging setup lazily
    from build_static_site import configure_logging

    configure_logging()
    return 0 if serve_site(args.dir, port=args.port, open_browser=not args.no_browser) else 1


if __name__ == "__main__":
    raise SystemExit(main())
