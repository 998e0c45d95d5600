import logging
import os
import pathlib

import pytest

from allmycircuits.file_operations import (
    find_global_gitignore,
    find_project_root,
    iter_candidate_files,
    matches_extension,
    normalize_extensions,
)

from conftest import git, make_tree, requires_git, requires_non_root


def walk(root, extensions=frozenset(), **kwargs):
    return [c.display_path for c in iter_candidate_files(root, frozenset(extensions), **kwargs)]


def test_extension_filter_is_case_insensitive(tmp_path):
    make_tree(
        tmp_path,
        {
            "a.rs": "fn a() {}",
            "b.txt": "text",
            "sub/c.RS": "fn c() {}",
            "noext": "plain",
        },
    )

    assert walk(tmp_path, {"rs"}) == ["a.rs", "sub/c.RS"]


def test_empty_filter_matches_every_file(tmp_path):
    make_tree(tmp_path, {"a.rs": "", "b.txt": "", ".hidden": "", "noext": ""})

    assert walk(tmp_path) == [".hidden", "a.rs", "b.txt", "noext"]


def test_files_come_before_subdirectories_in_sorted_order(tmp_path):
    make_tree(
        tmp_path,
        {
            "z.rs": "",
            "b.rs": "",
            "a/inner.rs": "",
            "a/deeper/x.rs": "",
            "c/y.rs": "",
        },
    )

    assert walk(tmp_path) == ["b.rs", "z.rs", "a/inner.rs", "a/deeper/x.rs", "c/y.rs"]


def test_walker_is_lazy(tmp_path):
    make_tree(tmp_path, {"a.rs": ""})

    files = iter_candidate_files(tmp_path)

    assert iter(files) is files
    assert [c.display_path for c in files] == ["a.rs"]
    assert list(files) == []


def test_candidate_paths(tmp_path):
    make_tree(tmp_path, {"sub/a.rs": ""})

    (candidate,) = iter_candidate_files(tmp_path)

    assert candidate.path.is_absolute()
    assert not candidate.relative_path.is_absolute()
    assert candidate.path == tmp_path.resolve() / "sub" / "a.rs"
    assert candidate.display_path == "sub/a.rs"


def test_gitignore_is_respected(tmp_path):
    make_tree(
        tmp_path,
        {
            ".gitignore": "*.txt\ntarget/\n",
            "main.rs": "",
            "notes.txt": "",
            "sub/more.txt": "",
            "target/ignored.rs": "",
            "sub/target/also.rs": "",
        },
    )

    assert walk(tmp_path) == [".gitignore", "main.rs"]


def test_nested_gitignore_takes_precedence(tmp_path):
    make_tree(
        tmp_path,
        {
            ".gitignore": "*.log\n",
            "root.log": "",
            "sub/.gitignore": "!keep.log\n",
            "sub/keep.log": "",
            "sub/other.log": "",
        },
    )

    assert walk(tmp_path, {"log"}) == ["sub/keep.log"]


def test_nested_gitignore_is_anchored_at_its_directory(tmp_path):
    make_tree(
        tmp_path,
        {
            "local.rs": "",
            "sub/.gitignore": "/local.rs\n",
            "sub/local.rs": "",
            "sub/deeper/local.rs": "",
        },
    )

    assert walk(tmp_path, {"rs"}) == ["local.rs", "sub/deeper/local.rs"]


def test_dot_ignore_overrides_gitignore(tmp_path):
    make_tree(
        tmp_path,
        {
            ".gitignore": "*.rs\n",
            ".ignore": "!keep.rs\n",
            "keep.rs": "",
            "drop.rs": "",
        },
    )

    assert walk(tmp_path, {"rs"}) == ["keep.rs"]


def test_ignored_directory_cannot_be_reincluded(tmp_path):
    make_tree(
        tmp_path,
        {
            ".gitignore": "build/\n!build/keep.rs\n",
            "build/keep.rs": "",
            "src.rs": "",
        },
    )

    assert walk(tmp_path, {"rs"}) == ["src.rs"]


def test_parent_ignore_files_apply_inside_project(tmp_path):
    make_tree(
        tmp_path,
        {
            ".git/HEAD": "ref: refs/heads/main\n",
            ".gitignore": "*.tmp\n",
            "sub/a.rs": "",
            "sub/b.tmp": "",
        },
    )

    assert walk(tmp_path / "sub", project_root=tmp_path) == ["a.rs"]


def test_git_directory_and_info_exclude(tmp_path):
    make_tree(
        tmp_path,
        {
            ".git/HEAD": "ref: refs/heads/main\n",
            ".git/info/exclude": "secret.rs\n",
            "secret.rs": "",
            "public.rs": "",
        },
    )

    assert walk(tmp_path, project_root=tmp_path) == ["public.rs"]


def test_global_ignore_has_lowest_precedence(tmp_path):
    global_ignore = tmp_path / "global-ignore"
    global_ignore.write_text("*.bak\n*.orig\n")
    root = make_tree(
        tmp_path / "project",
        {
            ".gitignore": "!wanted.orig\n",
            "a.bak": "",
            "wanted.orig": "",
            "main.rs": "",
        },
    )

    assert walk(root, {"bak", "orig", "rs"}, global_ignore=global_ignore) == [
        "main.rs",
        "wanted.orig",
    ]


def test_excluded_folders_at_any_depth(tmp_path):
    make_tree(
        tmp_path,
        {
            "src/main.rs": "",
            "target/debug/app.rs": "",
            "docs/target/example.rs": "",
            "other/file.rs": "",
        },
    )

    assert walk(tmp_path, {"rs"}, excluded_folders=["target"]) == ["other/file.rs", "src/main.rs"]


def test_config_file_and_excluded_paths_are_skipped(tmp_path):
    make_tree(tmp_path, {".amc.toml": "", "sub/.amc.toml": "", "out.toml": "", "a.toml": ""})

    assert walk(tmp_path, {"toml"}, excluded_paths=[tmp_path / "out.toml"]) == ["a.toml"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
def test_symlinks_are_leaves(tmp_path):
    make_tree(tmp_path, {"real/a.rs": ""})
    os.symlink(tmp_path, tmp_path / "real" / "loop")
    os.symlink(tmp_path / "real" / "a.rs", tmp_path / "link.rs")
    os.symlink(tmp_path / "missing.rs", tmp_path / "dangling.rs")

    assert walk(tmp_path) == ["real/a.rs"]


@requires_non_root
def test_unreadable_directory_is_skipped_with_warning(tmp_path, caplog):
    make_tree(tmp_path, {"a.rs": "", "locked/b.rs": ""})
    locked = tmp_path / "locked"
    locked.chmod(0)
    try:
        with caplog.at_level(logging.WARNING):
            found = walk(tmp_path)
    finally:
        locked.chmod(0o755)

    assert found == ["a.rs"]
    assert "unreadable directory" in caplog.text


@requires_non_root
def test_listable_but_not_searchable_directory_is_skipped(tmp_path, caplog):
    make_tree(tmp_path, {"b.rs": "", "ronly/a.rs": ""})
    ronly = tmp_path / "ronly"
    ronly.chmod(0o444)
    try:
        with caplog.at_level(logging.WARNING):
            found = walk(tmp_path)
    finally:
        ronly.chmod(0o755)

    assert found == ["b.rs"]
    assert "ronly" in caplog.text


def test_find_project_root(tmp_path):
    make_tree(tmp_path, {".git/HEAD": "", "a/b/c.rs": ""})

    assert find_project_root(tmp_path / "a" / "b") == tmp_path.resolve()


def test_find_project_root_outside_repository(tmp_path, monkeypatch):
    monkeypatch.setattr(pathlib.Path, "exists", lambda self: False)

    assert find_project_root(tmp_path) is None


def test_find_global_gitignore_uses_xdg_config(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert find_global_gitignore() is None

    make_tree(tmp_path, {"git/ignore": "*.bak\n"})
    assert find_global_gitignore() == tmp_path / "git" / "ignore"


def test_matches_extension():
    assert matches_extension(pathlib.Path("src/Main.RS"), frozenset({"rs"}))
    assert not matches_extension(pathlib.Path("Makefile"), frozenset({"rs"}))
    assert not matches_extension(pathlib.Path("archive.tar.gz"), frozenset({"tar"}))
    assert matches_extension(pathlib.Path("anything"), frozenset())


def test_normalize_extensions():
    assert normalize_extensions([".RS", "toml", " .Md ", "", "."]) == {"rs", "toml", "md"}


@requires_git
def test_find_global_gitignore_reads_repository_config(git_repo, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    excludes = make_tree(tmp_path, {"excludes": "*.bak\n"}) / "excludes"
    git(git_repo, "config", "core.excludesFile", str(excludes))

    assert find_global_gitignore(git_repo) == excludes
    assert find_global_gitignore() is None
