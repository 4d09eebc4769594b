import gzip
from pathlib import Path

import pytest

from pageforge.errors import ConfigError
from pageforge.pages import (
    PAGES_DIR_ALIAS,
    PUBLIC_DIR_MIDDLEWARE_CONFLICT,
    collect_pages,
    create_pages_mapping,
    find_pages_dir,
    get_page_sizes,
    is_custom_page,
    is_reserved_page,
    verify_public_dir,
)


def test_reserved_pages() -> None:
    for page in ("/_app", "/_error", "/_document", "/api", "/api/users"):
        assert is_reserved_page(page)
    assert not is_reserved_page("/about")
    assert not is_reserved_page("/post/[id]")


@pytest.mark.parametrize("page", ["/apiary", "/api-docs", "/_application", "/_errors"])
def test_reserved_prefix_needs_a_segment_boundary(page: str) -> None:
    assert not is_reserved_page(page)


def test_find_pages_dir_prefers_root(tmp_path: Path) -> None:
    (tmp_path / "src" / "pages").mkdir(parents=True)
    assert find_pages_dir(tmp_path) == tmp_path / "src" / "pages"
    (tmp_path / "pages").mkdir()
    assert find_pages_dir(tmp_path) == tmp_path / "pages"


def test_find_pages_dir_missing(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Couldn't find a `pages` directory"):
        find_pages_dir(tmp_path)


def test_collect_pages_filters_extensions(tmp_path: Path) -> None:
    for rel in ("index.py", "blog/[slug].py", "notes.txt", "about.py"):
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")
    assert collect_pages(tmp_path, ["py"]) == ["/about.py", "/blog/[slug].py", "/index.py"]


def test_pages_mapping_keys_and_builtins() -> None:
    mapping = create_pages_mapping(["/index.py", "/blog/index.py", "/_app.py"], ["py"])
    assert list(mapping) == ["/", "/blog", "/_app", "/_error", "/_document"]
    assert mapping["/"] == f"{PAGES_DIR_ALIAS}/index.py"
    assert mapping["/_error"] == "pageforge/pages/_error"
    assert is_custom_page(mapping, "/_app")
    assert not is_custom_page(mapping, "/_document")


def test_pages_mapping_duplicate_warns(caplog: pytest.LogCaptureFixture) -> None:
    mapping = create_pages_mapping(["/blog.py", "/blog/index.py"], ["py"])
    assert mapping["/blog"] == f"{PAGES_DIR_ALIAS}/blog/index.py"
    assert "Duplicate page detected" in caplog.text


def test_public_next_folder_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "_next").mkdir()
    with pytest.raises(ConfigError) as excinfo:
        verify_public_dir(tmp_path, {"/": "x"})
    assert str(excinfo.value) == PUBLIC_DIR_MIDDLEWARE_CONFLICT


def test_public_conflicts_are_listed_together(tmp_path: Path) -> None:
    for rel in ("about", "blog/index", "logo.png"):
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")
    mapping = {"/about": "a", "/blog": "b", "/": "c"}
    with pytest.raises(ConfigError) as excinfo:
        verify_public_dir(tmp_path, mapping)
    message = str(excinfo.value)
    assert message.startswith("Conflicting public and page files were found.")
    assert "/about" in message
    assert "/blog" in message
    assert "logo.png" not in message


def test_public_dir_missing_is_fine(tmp_path: Path) -> None:
    verify_public_dir(tmp_path / "public", {"/": "x"})


def test_page_sizes(tmp_path: Path) -> None:
    files = {
        "app.js": "app" * 50,
        "shared.js": "shared" * 50,
        "a.js": "a-only" * 100,
        "b.js": "b-only" * 10,
    }
    for name, content in files.items():
        (tmp_path / name).write_text(content)

    def gz(name: str) -> int:
        return len(gzip.compress((tmp_path / name).read_bytes(), mtime=0))

    manifest = {
        "pages": {
            "/_app": ["app.js"],
            "/a": ["shared.js", "a.js"],
            "/b": ["shared.js", "b.js"],
        }
    }
    self_size, total = get_page_sizes("/a", tmp_path, manifest)
    assert self_size == gz("a.js")
    assert total == gz("shared.js") + gz("a.js") + gz("app.js")
