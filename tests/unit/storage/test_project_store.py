"""Tests for the project stores."""

import pytest

from miniapp_factory.core.exceptions import StorageError
from miniapp_factory.storage import (
    DirectoryProjectStore,
    InMemoryProjectStore,
    ProjectStore,
    validate_project_name,
)
from miniapp_factory.tools import FileType, ProjectFile


@pytest.mark.parametrize("name", ["shop", "my-site_2", "v1.0"])
def test_valid_project_names(name):
    assert validate_project_name(name) == name


@pytest.mark.parametrize("name", ["", ".hidden", "a/b", "..", "a..b", "-x", "sp ace"])
def test_invalid_project_names(name):
    with pytest.raises(StorageError, match="Invalid project name"):
        validate_project_name(name)


class TestInMemoryProjectStore:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryProjectStore(), ProjectStore)

    def test_round_trip_returns_copies(self):
        store = InMemoryProjectStore()
        files = [ProjectFile.from_path("index.html", "<p></p>")]

        store.set_files("shop", files)
        loaded = store.get_files("shop")
        loaded.append(ProjectFile.from_path("extra.css", ""))

        assert "shop" in store
        assert store.get_files("shop") == files

    def test_unknown_project(self):
        with pytest.raises(StorageError, match="Project not found: nope"):
            InMemoryProjectStore().get_files("nope")


class TestDirectoryProjectStore:
    @pytest.fixture
    def store(self, tmp_path):
        project = tmp_path / "shop"
        (project / "css").mkdir(parents=True)
        (project / "index.html").write_text("<h1>Shop</h1>", encoding="utf-8")
        (project / "css" / "styles.css").write_text("h1 {}", encoding="utf-8")
        (project / "logo.png").write_bytes(b"\x89PNG")
        (project / ".git").mkdir()
        (project / ".git" / "hook.js").write_text("x", encoding="utf-8")
        return DirectoryProjectStore(tmp_path)

    def test_satisfies_protocol(self, store):
        assert isinstance(store, ProjectStore)

    def test_loads_web_files_only(self, store):
        files = store.get_files("shop")

        assert [f.path for f in files] == ["css/styles.css", "index.html"]
        assert files[0].file_type is FileType.STYLE
        assert files[1].content == "<h1>Shop</h1>"

    def test_missing_project(self, store):
        with pytest.raises(StorageError, match="Project not found: blog"):
            store.get_files("blog")

    def test_set_files_writes_and_prunes(self, store, tmp_path):
        store.set_files(
            "shop",
            [
                ProjectFile.from_path("index.html", "<h1>New</h1>"),
                ProjectFile.from_path("js/app.js", "go();"),
            ],
        )

        project = tmp_path / "shop"
        assert (project / "index.html").read_text(encoding="utf-8") == "<h1>New</h1>"
        assert (project / "js" / "app.js").read_text(encoding="utf-8") == "go();"
        assert not (project / "css" / "styles.css").exists()
        assert (project / "logo.png").exists()
        assert (project / ".git" / "hook.js").exists()

    def test_file_type_survives_round_trip(self, store, tmp_path):
        index = ProjectFile.from_path("index.html", "<h1>Shop</h1>")
        header = ProjectFile.from_path(
            "parts/header.html", "<header></header>", FileType.PARTIAL
        )

        store.set_files("shop", [index, header])
        loaded = {f.path: f.file_type for f in store.get_files("shop")}

        assert loaded == {
            "index.html": FileType.PAGE,
            "parts/header.html": FileType.PARTIAL,
        }
        assert (tmp_path / "shop" / ".miniapp-files.yaml").exists()

    def test_manifest_removed_when_types_match_extensions(self, store, tmp_path):
        header = ProjectFile.from_path("header.html", "<header/>", FileType.PARTIAL)
        store.set_files("shop", [header])

        store.set_files("shop", [ProjectFile.from_path("header.html", "<p></p>")])

        assert not (tmp_path / "shop" / ".miniapp-files.yaml").exists()
        assert store.get_files("shop")[0].file_type is FileType.PAGE

    def test_set_files_creates_project(self, tmp_path):
        store = DirectoryProjectStore(tmp_path / "projects")

        store.set_files("blog", [ProjectFile.from_path("index.html", "hi")])

        assert [f.path for f in store.get_files("blog")] == ["index.html"]

    def test_refuses_unsafe_paths(self, store, tmp_path):
        escaping = ProjectFile.from_path("../outside.html", "x")

        with pytest.raises(StorageError, match="Refusing to write unsafe path"):
            store.set_files("shop", [escaping])

        assert not (tmp_path / "outside.html").exists()
        assert (tmp_path / "shop" / "index.html").exists()
