"""
Content responses for static serving.

Produces file bytes with a guessed content type, injects the live-reload
script into HTML, and renders directory listings. Disk reads happen here,
on a snapshot of the serving state, never while holding the state lock.
"""

import html
import mimetypes
import re
from pathlib import Path
from typing import NamedTuple
from urllib.parse import quote

from websii.errors import InternalIO, PathNotFound
from websii.serving.resolver import canonical_root, ensure_contained, resolve_request_path
from websii.serving.state import Snapshot

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
OCTET_STREAM = "application/octet-stream"
INDEX_FILE = "index.html"

_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)

RELOAD_SCRIPT_TEMPLATE = """
<script>
(function() {{
    if (window.__websiiLiveReload) return;
    window.__websiiLiveReload = true;
    const evtSource = new EventSource('{stream_path}');
    evtSource.onmessage = function(event) {{
        if (event.data === 'reload') {{
            console.log('File change detected, reloading...');
            window.location.reload();
        }}
    }};
    evtSource.onerror = function(err) {{
        console.error('EventSource error:', err);
        evtSource.close();
        setTimeout(() => window.location.reload(), {fallback_ms});
    }};
}})();
</script>
"""

LISTING_HEAD = (
    "<!DOCTYPE html><html><head><meta charset='utf-8'>"
    "<title>Directory listing</title>"
    "<style>"
    "body { font-family: monospace; max-width: 900px; margin: 40px auto; padding: 0 20px; }"
    "h1 { color: #333; border-bottom: 2px solid #0066cc; padding-bottom: 10px; }"
    "ul { list-style: none; padding: 0; }"
    "li { padding: 8px; border-bottom: 1px solid #eee; }"
    "li:hover { background: #f5f5f5; }"
    "a { text-decoration: none; color: #0066cc; }"
    "a:hover { text-decoration: underline; }"
    ".dir { font-weight: bold; }"
    "</style></head><body>"
)


class Content(NamedTuple):
    body: bytes
    content_type: str


def reload_script(stream_path: str = "/__reload__", fallback_ms: int = 5000) -> str:
    return RELOAD_SCRIPT_TEMPLATE.format(stream_path=stream_path, fallback_ms=int(fallback_ms))


def inject_reload_script(document: str, script: str) -> str:
    """Insert ``script`` before the last closing body tag, or append it."""
    matches = list(_BODY_CLOSE.finditer(document))
    if not matches:
        return document + script
    pos = matches[-1].start()
    return document[:pos] + script + document[pos:]


def guess_content_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or OCTET_STREAM


class ContentResponder:
    """Turns a request path plus a state snapshot into response content."""

    def __init__(self, stream_path: str = "/__reload__", fallback_reload_ms: int = 5000):
        self.script = reload_script(stream_path, fallback_reload_ms)

    def respond(self, request_path: str, snapshot: Snapshot) -> Content:
        """
        Build the response for ``request_path``.

        In direct-file mode the root URL returns the direct file; every
        other path resolves against the root directory.

        Raises:
            PathNotFound, Forbidden, InternalIO
        """
        if snapshot.direct_file is not None and request_path in ("", "/"):
            return self.file_content(snapshot.direct_file)

        target = resolve_request_path(request_path, snapshot.root)
        if target.is_file():
            return self.file_content(target)
        if target.is_dir():
            return self.directory_content(target, canonical_root(snapshot.root))
        raise PathNotFound(f"Not a file or directory: {request_path}")

    def file_content(self, path: Path) -> Content:
        data = self._read(path)
        content_type = guess_content_type(path)
        if content_type == "text/html":
            return self.html_content(data)
        return Content(data, content_type)

    def html_content(self, data: bytes) -> Content:
        document = data.decode("utf-8", errors="replace")
        return Content(inject_reload_script(document, self.script).encode("utf-8"), HTML_CONTENT_TYPE)

    def directory_content(self, directory: Path, root: Path) -> Content:
        index = directory / INDEX_FILE
        if index.is_file():
            try:
                index = ensure_contained(index.resolve(strict=True), root)
            except OSError as e:
                raise PathNotFound(f"Not found: {index}") from e
            return self.html_content(self._read(index))
        return Content(self.render_listing(directory, root).encode("utf-8"), HTML_CONTENT_TYPE)

    def render_listing(self, directory: Path, root: Path) -> str:
        relative = directory.relative_to(root).as_posix()
        if relative == ".":
            relative = ""

        dirs = []
        files = []
        try:
            for entry in directory.iterdir():
                link = f"{relative}/{entry.name}" if relative else entry.name
                if entry.is_dir():
                    dirs.append((entry.name, link))
                else:
                    files.append((entry.name, link))
        except OSError as e:
            raise InternalIO(f"Cannot list directory {directory}: {e}") from e

        dirs.sort()
        files.sort()

        parts = [LISTING_HEAD, f"<h1>Index of /{html.escape(relative)}</h1><ul>"]
        if relative:
            parent = relative.rpartition("/")[0]
            parts.append(f"<li><a href='/{_href(parent)}' class='dir'>../</a></li>")
        for name, link in dirs:
            parts.append(f"<li><a href='/{_href(link)}' class='dir'>{html.escape(name)}/</a></li>")
        for name, link in files:
            parts.append(f"<li><a href='/{_href(link)}' class='file'>{html.escape(name)}</a></li>")
        parts.append("</ul></body></html>")

        return inject_reload_script("".join(parts), self.script)

    @staticmethod
    def _read(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise PathNotFound(f"Not found: {path}") from e
        except IsADirectoryError as e:
            raise PathNotFound(f"Not a file: {path}") from e
        except OSError as e:
            raise InternalIO(f"Cannot read {path}: {e}") from e


def _href(link: str) -> str:
    return html.escape(quote(link), quote=True)


__all__ = [
    "Content",
    "ContentResponder",
    "inject_reload_script",
    "reload_script",
    "guess_content_type",
]
