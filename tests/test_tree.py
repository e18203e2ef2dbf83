"""Tests for rendergit_site.tree."""

from __future__ import annotations

from rendergit_site.git import TreeEntry
from rendergit_site.tree import render_tree, tree_sort_key


class TestSortKey:
    def test_file_sorts_before_directory(self) -> None:
        assert tree_sort_key("z.txt") < tree_sort_key("a/b.txt")

    def test_lexical_within_kind(self) -> None:
        assert tree_sort_key("a/b.txt") < tree_sort_key("a/c.txt")
        assert tree_sort_key("a/x/1") < tree_sort_key("b/a/1")


class TestRenderTree:
    def test_files_before_subdirectories(self) -> None:
        out = render_tree(["a/d/e.txt", "f.txt", "a/c.txt", "a/b.txt"])

        order = [
            out.index(">f.txt<"),
            out.index('id="files:a"'),
            out.index(">b.txt<"),
            out.index(">c.txt<"),
            out.index('id="files:a/d"'),
            out.index(">e.txt<"),
            out.index("<!-- d -->"),
            out.index("<!-- a -->"),
        ]
        assert order == sorted(order)

    def test_each_directory_opened_and_closed_once(self) -> None:
        out = render_tree(["a/d/e.txt", "f.txt", "a/c.txt", "a/b.txt"])
        assert out.count("<ul>") == 2
        assert out.count("</ul></li>") == 2
        assert out.count('id="files:a"') == 1
        assert out.count('id="files:a/d"') == 1

    def test_empty_listing(self) -> None:
        assert render_tree([]) == ""

    def test_sibling_directories_close_before_next_opens(self) -> None:
        out = render_tree(["x/y/z.txt", "x/w.txt", "q/r.txt"])
        assert out.index("<!-- q -->") < out.index('id="files:x"')
        assert out.index(">w.txt<") < out.index('id="files:x/y"')
        assert out.count("<ul>") == out.count("</ul></li>") == 3

    def test_leaf_links(self) -> None:
        out = render_tree(["dir/file name.txt"])
        assert 'href="dir/file%20name.txt.raw.html"' in out
        assert '(<a href="dir/file%20name.txt">raw</a>)' in out

    def test_markup_is_escaped(self) -> None:
        out = render_tree(["a<b>.txt"])
        assert "a&lt;b&gt;.txt" in out
        assert "<b>" not in out

    def test_submodule_is_listed_without_links(self) -> None:
        sub = TreeEntry("160000", "commit", "0123456789abcdef0123456789abcdef01234567", "lib/sub")
        out = render_tree([sub, "lib/a.txt"])
        assert "submodule @ 01234567" in out
        assert "lib/sub.raw.html" not in out
        assert out.index(">a.txt<") < out.index(">sub<")

    def test_mode_notes(self) -> None:
        out = render_tree([TreeEntry("100755", "blob", "", "run.sh"), TreeEntry("120000", "blob", "", "link")])
        assert "executable" in out
        assert "symlink" in out
