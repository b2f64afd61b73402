import pytest

import markup


def render(text, title="/doc.md", stylesheet=markup.STYLESHEET_PATH):
    return markup.render_markdown(text.encode("utf-8"), title, stylesheet).decode("utf-8")


def test_heading_and_emphasis():
    page = render("# Title\n\nHello *world*.")
    assert "<h1>Title</h1>" in page
    assert "<em>world</em>" in page


def test_complete_page():
    page = render("text", title="/notes/<x>.md", stylesheet="http://example.com/s.css")
    assert page.startswith("<!DOCTYPE html>")
    assert "<title>/notes/&lt;x&gt;.md</title>" in page
    assert '<link rel="stylesheet" type="text/css" href="http://example.com/s.css">' in page
    assert page.rstrip().endswith("</html>")


def test_smart_typography():
    assert "&rsquo;" in render("It's here.")


def test_fenced_code():
    page = render("```\nx = 1\n```\n")
    assert "<pre><code>x = 1" in page


def test_strikethrough():
    assert "<del>gone</del>" in render("~~gone~~")


def test_single_tilde_is_not_subscript():
    assert "<sub>" not in render("H~2~O")


def test_autolink():
    assert 'href="https://example.com"' in render("See https://example.com for more.")


def test_invalid_utf8_is_replaced():
    page = markup.render_markdown(b"caf\xe9", "/x.md", markup.STYLESHEET_PATH).decode("utf-8")
    assert "caf�" in page


def test_rendering_is_idempotent():
    text = "# A\n\n\"quoted\" -- text https://example.com ~~x~~"
    assert render(text) == render(text)


def test_render_file(docs):
    page = markup.render_file(str(docs / "a.md"), ".md", "/a.md", markup.STYLESHEET_PATH)
    assert b"<h1>Title</h1>" in page
    assert b"<title>/a.md</title>" in page


def test_render_file_extension_is_case_insensitive(docs):
    assert b"<p>b</p>" in markup.render_file(str(docs / "b.MD"), ".md", "/b.MD", markup.STYLESHEET_PATH)


def test_render_file_rejects_other_extensions(docs):
    with pytest.raises(markup.NotFound):
        markup.render_file(str(docs / "c.txt"), ".md", "/c.txt", markup.STYLESHEET_PATH)


def test_render_file_read_failure(docs):
    with pytest.raises(markup.NotFound):
        markup.render_file(str(docs / "gone.md"), ".md", "/gone.md", markup.STYLESHEET_PATH)


def test_serve_static():
    assert markup.serve_static("/static/stylesheet.css") == markup.STYLESHEET.encode("utf-8")
    assert markup.serve_static("/static/other.css") is None
    assert markup.serve_static("/") is None


def test_render_file_bare_extension_name(docs):
    (docs / ".md").write_text("dot\n", encoding="utf-8")
    assert b"<p>dot</p>" in markup.render_file(str(docs / ".md"), ".md", "/.md", markup.STYLESHEET_PATH)


def test_has_extension():
    assert markup.has_extension("/x/.md", ".md")
    assert markup.has_extension("/x/notes.MD", ".md")
    assert markup.has_extension("/x.d/notes.tar.md", ".md")
    assert not markup.has_extension("/x.md/notes", ".md")
    assert not markup.has_extension("/x/notes.mdx", ".md")
