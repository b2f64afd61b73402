import pytest

import markup


@pytest.fixture
def docs(tmp_path):
    """A small document tree:

    docs/
      a.md, b.MD, c.txt
      sub/inner.md
      .git/config.md
    """
    root = tmp_path / "docs"
    root.mkdir()
    (root / "a.md").write_text("# Title\n\nHello *world*.\n", encoding="utf-8")
    (root / "b.MD").write_text("b\n", encoding="utf-8")
    (root / "c.txt").write_text("not markdown\n", encoding="utf-8")
    (root / "sub").mkdir()
    (root / "sub" / "inner.md").write_text("## Inner\n", encoding="utf-8")
    (root / ".git").mkdir()
    (root / ".git" / "config.md").write_text("hidden\n", encoding="utf-8")
    return root


@pytest.fixture
def config(docs):
    return markup.validate_config(str(docs), port=0)


@pytest.fixture
def dispatcher(config):
    return markup.Dispatcher(config)


def symlink_or_skip(target, link, target_is_directory=False):
    try:
        link.symlink_to(target, target_is_directory=target_is_directory)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported here")
