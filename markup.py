#!/usr/bin/env python3
"""MarkUp: a tiny Markdown server.

Serves a directory tree of Markdown documents as rendered HTML pages.
Directories render as a list of links to their Markdown files and (when
recursion is enabled) their subdirectories; Markdown files render as
complete HTML documents styled by a built-in stylesheet.
"""
import argparse
import functools
import html
import http.server
import os
import socketserver
import stat
import sys
import urllib.parse
from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional

import markdown

STYLESHEET_PATH = "/static/stylesheet.css"

FILE = "file"
DIRECTORY = "directory"
MISSING = "missing"

MARKDOWN_EXTENSIONS = ["fenced_code", "smarty", "pymdownx.magiclink", "pymdownx.tilde"]
MARKDOWN_EXTENSION_CONFIGS = {"pymdownx.tilde": {"subscript": False}}


class ConfigError(ValueError):
    pass


class NotFound(Exception):
    """Any failure that must surface to the client as the generic 404 page."""


@dataclass(frozen=True)
class ServerConfig:
    root: str
    port: int = 8888
    recursive: bool = True
    stylesheet: str = STYLESHEET_PATH
    extension: str = ".md"


class ResolvedTarget(NamedTuple):
    filesystem_path: str
    url_path: str
    kind: str


class LinkEntry(NamedTuple):
    href: str
    label: str
    is_directory: bool


class Response(NamedTuple):
    status: int
    content_type: str
    body: bytes


# ───────────────────────── configuration ─────────────────────────
def validate_config(root=".", port=8888, recursive=True,
                    stylesheet=STYLESHEET_PATH, extension=".md") -> ServerConfig:
    """Check the startup options and freeze them into a ServerConfig.

    The root is resolved to an absolute, symlink-free path so that the
    containment check in resolve() compares like with like.
    """
    resolved = os.path.realpath(os.path.abspath(root))
    if not os.path.isdir(resolved):
        raise ConfigError(f"could not find the directory: {root}")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
        raise ConfigError(f"the port number ({port}) is not a valid port")
    if stylesheet != STYLESHEET_PATH and not stylesheet.startswith(("http://", "https://")):
        raise ConfigError(f'the stylesheet ("{stylesheet}") should be a URL starting with http')
    if not extension.startswith("."):
        raise ConfigError(f'the extension ("{extension}") should start with a dot')
    return ServerConfig(resolved, port, bool(recursive), stylesheet, extension)


# ───────────────────────── path resolution ─────────────────────────
def _within(root: str, path: str) -> bool:
    try:
        return os.path.commonpath([root, path]) == root
    except ValueError:  # different drives
        return False


def resolve(root: str, url_path: str) -> ResolvedTarget:
    """Map an untrusted URL path onto the filesystem below root.

    Anything that cannot be stat'ed, is neither a regular file nor a
    directory, or lands outside root (lexically or through a symlink)
    is reported as MISSING.
    """
    root = os.path.realpath(root)
    candidate = os.path.normpath(os.path.join(root, url_path.lstrip("/\\")))
    if not _within(root, candidate):
        return ResolvedTarget(candidate, url_path, MISSING)
    try:
        real = os.path.realpath(candidate)
        if not _within(root, real):
            return ResolvedTarget(candidate, url_path, MISSING)
        mode = os.stat(real).st_mode
    except (OSError, ValueError):
        return ResolvedTarget(candidate, url_path, MISSING)

    if stat.S_ISDIR(mode):
        return ResolvedTarget(real, url_path, DIRECTORY)
    if stat.S_ISREG(mode):
        return ResolvedTarget(real, url_path, FILE)
    return ResolvedTarget(candidate, url_path, MISSING)


def has_extension(path: str, extension: str) -> bool:
    # ".md" itself counts as having the ".md" extension
    name = os.path.basename(path)
    dot = name.rfind(".")
    return dot >= 0 and name[dot:].lower() == extension.lower()


# ───────────────────────── directory listing ─────────────────────────
def list_directory(dir_path: str, url_path: str, recursive: bool,
                   extension: str) -> Iterator[LinkEntry]:
    """Yield links for the Markdown files and subdirectories of dir_path.

    Only one level is enumerated; subdirectories are listed when their own
    URL is requested. Entries come out in lexical order.
    """
    base = url_path.rstrip("/")
    try:
        with os.scandir(dir_path) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        raise NotFound(url_path) from exc

    for entry in entries:
        href = urllib.parse.quote(f"{base}/{entry.name}")
        if entry.is_dir():
            if recursive and not entry.name.startswith("."):
                yield LinkEntry(href + "/", entry.name + "/", True)
        elif entry.is_file() and has_extension(entry.name, extension):
            yield LinkEntry(href, entry.name, False)


# ───────────────────────── markdown rendering ─────────────────────────
def render_markdown(source: bytes, title: str, stylesheet: str) -> bytes:
    """Render a Markdown document into a complete HTML page."""
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS,
                           extension_configs=MARKDOWN_EXTENSION_CONFIGS)
    body = md.convert(source.decode("utf-8", errors="replace"))
    page = f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{html.escape(title)}</title>
  <link rel="stylesheet" type="text/css" href="{html.escape(stylesheet)}">
</head>
<body>
{body}
</body>
</html>
"""
    return page.encode("utf-8")


def render_file(file_path: str, extension: str, title: str, stylesheet: str) -> bytes:
    if not has_extension(file_path, extension):
        raise NotFound(title)
    try:
        with open(file_path, "rb") as f:
            content = f.read()
    except OSError as exc:
        raise NotFound(title) from exc
    return render_markdown(content, title, stylesheet)


# ───────────────────────── static assets ─────────────────────────
def serve_static(url_path: str) -> Optional[bytes]:
    if url_path == STYLESHEET_PATH:
        return STYLESHEET.encode("utf-8")
    return None


# ───────────────────────── page scaffolding ─────────────────────────
def page(title: str, body: str) -> bytes:
    return (f"<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
            f"<title>{html.escape(title)}</title></head>"
            f"<body>{body}</body></html>").encode("utf-8")


def link_html(link: LinkEntry) -> str:
    return f'<a href="{html.escape(link.href)}"><tt>{html.escape(link.label)}</tt></a><br>'


def not_found_page(url_path: str) -> bytes:
    return page("File not found", f"File not found: {html.escape(url_path)}")


# ───────────────────────── dispatch ─────────────────────────
class Dispatcher:
    """Turns a decoded URL path into a Response.

    Every failure below the static asset check ends in the same 404 page,
    whether the path is missing, unreadable, outside the root, not Markdown
    or an unlistable directory.
    """

    def __init__(self, config: ServerConfig, log=None):
        self.config = config
        self.log = log

    def dispatch(self, url_path: str, log=None) -> Response:
        log = log or self.log
        asset = serve_static(url_path)
        if asset is not None:
            return Response(200, "text/css", asset)

        try:
            target = resolve(self.config.root, url_path)
            if target.kind == DIRECTORY:
                return Response(200, "text/html", self._listing(target))
            if target.kind == FILE:
                body = render_file(target.filesystem_path, self.config.extension,
                                   url_path, self.config.stylesheet)
                return Response(200, "text/html", body)
            raise NotFound(url_path)
        except Exception as exc:
            if log is not None:
                log("not found: %s (%r)", url_path, exc.__cause__ or exc)
            return Response(404, "text/html", not_found_page(url_path))

    def _listing(self, target: ResolvedTarget) -> bytes:
        # buffered so that an enumeration error never leaves a half-written page
        rows = [link_html(link) for link in list_directory(
            target.filesystem_path, target.url_path,
            self.config.recursive, self.config.extension)]
        return page(target.url_path, "".join(rows))


# ───────────────────────── http handler ─────────────────────────
class MarkdownHandler(http.server.BaseHTTPRequestHandler):
    server_version = "MarkUp/1.0"

    def __init__(self, *args, dispatcher=None, **kwargs):
        self.dispatcher = dispatcher
        super().__init__(*args, **kwargs)

    def _respond(self, send_body: bool):
        url_path = urllib.parse.unquote(urllib.parse.urlsplit(self.path).path)
        response = self.dispatcher.dispatch(url_path, log=self.log_message)
        self.send_response(response.status)
        self.send_header("Content-Type", response.content_type)
        self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        if send_body:
            self.wfile.write(response.body)

    def do_GET(self):
        self._respond(send_body=True)

    def do_HEAD(self):
        self._respond(send_body=False)


# ───────────────────── server bootstrap ──────────────────────
class MarkupServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


def make_server(config: ServerConfig, host: str = "") -> MarkupServer:
    dispatcher = Dispatcher(config)
    handler = functools.partial(MarkdownHandler, dispatcher=dispatcher)
    return MarkupServer((host, config.port), handler)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="markup", description="MarkUp: a tiny Markdown server")
    parser.add_argument("--root", default=".",
                        help="root folder containing the Markdown documents")
    parser.add_argument("--port", type=int, default=8888,
                        help="port the server should use")
    parser.add_argument("--recursive", action=argparse.BooleanOptionalAction, default=True,
                        help="allow serving Markdown documents within the subdirectories of the root")
    parser.add_argument("--stylesheet", default=STYLESHEET_PATH,
                        help="stylesheet to use when rendering Markdown files")
    parser.add_argument("--extension", default=".md",
                        help="extension identifying the Markdown files")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    try:
        config = validate_config(args.root, args.port, args.recursive,
                                 args.stylesheet, args.extension)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        httpd = make_server(config)
    except OSError as exc:
        print(f"Error: could not listen at {config.port}: {exc}", file=sys.stderr)
        sys.exit(1)

    with httpd:
        print(f"Starting server at port ({httpd.server_address[1]}) and root ({config.root})")
        print("Press CTRL-C to terminate")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\nShutting down server...")


# ───────────────────── built-in stylesheet ──────────────────────
# Mimics the default GitHub Markdown stylesheet.
# Credits to Andy Ferra: https://gist.github.com/2554919
STYLESHEET = """
body {
  font-family: Helvetica, arial, sans-serif;
  font-size: 14px;
  line-height: 1.6;
  padding-top: 10px;
  padding-bottom: 10px;
  background-color: white;
  padding: 30px; }

body > *:first-child {
  margin-top: 0 !important; }
body > *:last-child {
  margin-bottom: 0 !important; }

a {
  color: #4183C4; }
a.absent {
  color: #cc0000; }
a.anchor {
  display: block;
  padding-left: 30px;
  margin-left: -30px;
  cursor: pointer;
  position: absolute;
  top: 0;
  left: 0;
  bottom: 0; }

h1, h2, h3, h4, h5, h6 {
  margin: 20px 0 10px;
  padding: 0;
  font-weight: bold;
  -webkit-font-smoothing: antialiased;
  cursor: text;
  position: relative; }

h1:hover a.anchor, h2:hover a.anchor, h3:hover a.anchor, h4:hover a.anchor, h5:hover a.anchor, h6:hover a.anchor {
  background: url("../../images/modules/styleguide/para.png") no-repeat 10px center;
  text-decoration: none; }

h1 tt, h1 code {
  font-size: inherit; }

h2 tt, h2 code {
  font-size: inherit; }

h3 tt, h3 code {
  font-size: inherit; }

h4 tt, h4 code {
  font-size: inherit; }

h5 tt, h5 code {
  font-size: inherit; }

h6 tt, h6 code {
  font-size: inherit; }

h1 {
  font-size: 28px;
  color: black; }

h2 {
  font-size: 24px;
  border-bottom: 1px solid #cccccc;
  color: black; }

h3 {
  font-size: 18px; }

h4 {
  font-size: 16px; }

h5 {
  font-size: 14px; }

h6 {
  color: #777777;
  font-size: 14px; }

p, blockquote, ul, ol, dl, li, table, pre {
  margin: 15px 0; }

hr {
  background: transparent url("../../images/modules/pulls/dirty-shade.png") repeat-x 0 0;
  border: 0 none;
  color: #cccccc;
  height: 4px;
  padding: 0; }

body > h2:first-child {
  margin-top: 0;
  padding-top: 0; }
body > h1:first-child {
  margin-top: 0;
  padding-top: 0; }
  body > h1:first-child + h2 {
    margin-top: 0;
    padding-top: 0; }
body > h3:first-child, body > h4:first-child, body > h5:first-child, body > h6:first-child {
  margin-top: 0;
  padding-top: 0; }

a:first-child h1, a:first-child h2, a:first-child h3, a:first-child h4, a:first-child h5, a:first-child h6 {
  margin-top: 0;
  padding-top: 0; }

h1 p, h2 p, h3 p, h4 p, h5 p, h6 p {
  margin-top: 0; }

li p.first {
  display: inline-block; }

ul, ol {
  padding-left: 30px; }

ul :first-child, ol :first-child {
  margin-top: 0; }

ul :last-child, ol :last-child {
  margin-bottom: 0; }

dl {
  padding: 0; }
  dl dt {
    font-size: 14px;
    font-weight: bold;
    font-style: italic;
    padding: 0;
    margin: 15px 0 5px; }
    dl dt:first-child {
      padding: 0; }
    dl dt > :first-child {
      margin-top: 0; }
    dl dt > :last-child {
      margin-bottom: 0; }
  dl dd {
    margin: 0 0 15px;
    padding: 0 15px; }
    dl dd > :first-child {
      margin-top: 0; }
    dl dd > :last-child {
      margin-bottom: 0; }

blockquote {
  border-left: 4px solid #dddddd;
  padding: 0 15px;
  color: #777777; }
  blockquote > :first-child {
    margin-top: 0; }
  blockquote > :last-child {
    margin-bottom: 0; }

table {
  padding: 0; }
  table tr {
    border-top: 1px solid #cccccc;
    background-color: white;
    margin: 0;
    padding: 0; }
    table tr:nth-child(2n) {
      background-color: #f8f8f8; }
    table tr th {
      font-weight: bold;
      border: 1px solid #cccccc;
      text-align: left;
      margin: 0;
      padding: 6px 13px; }
    table tr td {
      border: 1px solid #cccccc;
      text-align: left;
      margin: 0;
      padding: 6px 13px; }
    table tr th :first-child, table tr td :first-child {
      margin-top: 0; }
    table tr th :last-child, table tr td :last-child {
      margin-bottom: 0; }

img {
  max-width: 100%; }

span.frame {
  display: block;
  overflow: hidden; }
  span.frame > span {
    border: 1px solid #dddddd;
    display: block;
    float: left;
    overflow: hidden;
    margin: 13px 0 0;
    padding: 7px;
    width: auto; }
  span.frame span img {
    display: block;
    float: left; }
  span.frame span span {
    clear: both;
    color: #333333;
    display: block;
    padding: 5px 0 0; }
span.align-center {
  display: block;
  overflow: hidden;
  clear: both; }
  span.align-center > span {
    display: block;
    overflow: hidden;
    margin: 13px auto 0;
    text-align: center; }
  span.align-center span img {
    margin: 0 auto;
    text-align: center; }
span.align-right {
  display: block;
  overflow: hidden;
  clear: both; }
  span.align-right > span {
    display: block;
    overflow: hidden;
    margin: 13px 0 0;
    text-align: right; }
  span.align-right span img {
    margin: 0;
    text-align: right; }
span.float-left {
  display: block;
  margin-right: 13px;
  overflow: hidden;
  float: left; }
  span.float-left span {
    margin: 13px 0 0; }
span.float-right {
  display: block;
  margin-left: 13px;
  overflow: hidden;
  float: right; }
  span.float-right > span {
    display: block;
    overflow: hidden;
    margin: 13px auto 0;
    text-align: right; }

code, tt {
  margin: 0 2px;
  padding: 0 5px;
  white-space: nowrap;
  border: 1px solid #eaeaea;
  background-color: #f8f8f8;
  border-radius: 3px; }

pre code {
  margin: 0;
  padding: 0;
  white-space: pre;
  border: none;
  background: transparent; }

.highlight pre {
  background-color: #f8f8f8;
  border: 1px solid #cccccc;
  font-size: 13px;
  line-height: 19px;
  overflow: auto;
  padding: 6px 10px;
  border-radius: 3px; }

pre {
  background-color: #f8f8f8;
  border: 1px solid #cccccc;
  font-size: 13px;
  line-height: 19px;
  overflow: auto;
  padding: 6px 10px;
  border-radius: 3px; }
  pre code, pre tt {
    background-color: transparent;
    border: none; }
"""


if __name__ == "__main__":
    main()
