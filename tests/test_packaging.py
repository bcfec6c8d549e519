"""Tests for packaging workspaces into zip archives."""

import os
import subprocess
import zipfile
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import respx
from rich.progress import Progress

from gt_installer.config import Settings
from gt_installer.platform import paths_for, resolve_host
from gt_installer.tools.packaging import (
    PackagingError,
    package_entries,
    package_release,
    package_tentative,
    release_path,
    unpackage_tentative,
    zip_entries,
)
from gt_installer.transfer.relocate import NoMatchError
from gt_installer.types import Version
from gt_installer.workspace.descriptor import WorkspaceDescriptor

RUN = "gt_installer.smalltalk.sequencer.subprocess.run"


@pytest.fixture
def built_workspace(gt_descriptor):
    workspace = gt_descriptor.workspace
    (workspace / "GlamorousToolkit.image").write_bytes(b"image")
    (workspace / "GlamorousToolkit.changes").write_bytes(b"changes")
    (workspace / "Pharo.sources").write_bytes(b"sources")
    (workspace / "gt-extra" / "feenk").mkdir(parents=True)
    (workspace / "gt-extra" / "feenk" / "notes.txt").write_text("notes")
    gt_descriptor.save()
    return gt_descriptor


class TestZipEntries:
    """Tests for zip_entries function."""

    def test_layout(self, tmp_path):
        """Files sit at the root and folders keep their own name."""
        (tmp_path / "a.image").write_text("a")
        folder = tmp_path / "gt-extra" / "sub"
        folder.mkdir(parents=True)
        (folder / "x.txt").write_text("x")

        archive = zip_entries(
            tmp_path / "out" / "p.zip", [tmp_path / "a.image", tmp_path / "gt-extra"]
        )

        with zipfile.ZipFile(archive) as zf:
            names = zf.namelist()
            assert zf.getinfo("a.image").compress_type == zipfile.ZIP_DEFLATED
        assert "a.image" in names
        assert "gt-extra/sub/x.txt" in names
        assert not any(name.startswith(str(tmp_path).lstrip("/")) for name in names)

    @pytest.mark.skipif(os.name != "posix", reason="POSIX symlinks")
    def test_symlinks_stored_as_links(self, tmp_path):
        lib = tmp_path / "lib"
        lib.mkdir()
        (lib / "libreal.so").write_text("real")
        os.symlink("libreal.so", lib / "liblink.so")

        archive = zip_entries(tmp_path / "p.zip", [lib])

        with zipfile.ZipFile(archive) as zf:
            info = zf.getinfo("lib/liblink.so")
            assert (info.external_attr >> 16) & 0o170000 == 0o120000
            assert zf.read(info) == b"libreal.so"

    def test_missing_entry(self, tmp_path):
        with pytest.raises(PackagingError) as exc_info:
            zip_entries(tmp_path / "p.zip", [tmp_path / "missing.image"])
        assert exc_info.value.code == "os_error"


class TestPackageEntries:
    """Tests for package_entries function."""

    def test_complete_workspace(self, built_workspace):
        names = [entry.name for entry in package_entries(built_workspace)]
        assert names == [
            "GlamorousToolkit.image",
            "GlamorousToolkit.changes",
            "Pharo.sources",
            "gtoolkit.yaml",
            "gt-extra",
            "bin",
        ]

    def test_missing_sources(self, built_workspace):
        """A missing image file should fail unless absences are ignored."""
        (built_workspace.workspace / "Pharo.sources").unlink()

        with pytest.raises(NoMatchError):
            package_entries(built_workspace)

        names = [e.name for e in package_entries(built_workspace, ignore_absent=True)]
        assert "Pharo.sources" not in names

    def test_missing_extra(self, built_workspace):
        (built_workspace.workspace / "gt-extra" / "feenk" / "notes.txt").unlink()
        (built_workspace.workspace / "gt-extra" / "feenk").rmdir()
        (built_workspace.workspace / "gt-extra").rmdir()

        with pytest.raises(PackagingError) as exc_info:
            package_entries(built_workspace)
        assert exc_info.value.code == "missing_entry"


class TestReleasePath:
    """Tests for release_path function."""

    def test_renders_every_component(self):
        template = Path("releases/v{{version}}/GlamorousToolkit-{{os}}-{{arch}}.zip")
        assert release_path(template, Version(1, 0, 1530), "Linux", "x86_64") == Path(
            "releases/v1.0.1530/GlamorousToolkit-Linux-x86_64.zip"
        )


class TestPackageRelease:
    """Tests for package_release function."""

    def test_named_after_image_version(self, built_workspace, console, tmp_path):
        with patch(RUN) as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                [], 0, stdout=b"v1.0.1531\n", stderr=b""
            )
            archive = package_release(
                built_workspace,
                tmp_path / "GlamorousToolkit-{{os}}-{{arch}}-v{{version}}.zip",
                console=console,
            )

        assert archive.name == "GlamorousToolkit-Linux-x86_64-v1.0.1531.zip"
        with zipfile.ZipFile(archive) as zf:
            assert "gt-extra/feenk/notes.txt" in zf.namelist()


class TestTentative:
    """Tests for tentative packages."""

    @respx.mock
    def test_round_trip_fetches_runtime(self, built_workspace, tmp_path):
        """Unpacking should restore the state and fetch this host's runtime."""
        archive = package_tentative(built_workspace, tmp_path / "tentative.zip")
        host = paths_for(resolve_host())

        app_zip = tmp_path / "app.zip"
        with zipfile.ZipFile(app_zip, "w") as zf:
            zf.writestr(host.executable_path, "#!/bin/sh\n")
        body = app_zip.read_bytes()
        url = host.vm_url(Version(1, 0, 7))
        respx.head(url).mock(
            return_value=httpx.Response(200, headers={"Content-Length": str(len(body))})
        )
        respx.get(url).mock(return_value=httpx.Response(200, content=body))

        target = tmp_path / "elsewhere"
        descriptor = unpackage_tentative(
            target,
            archive,
            settings=Settings(),
            download_progress=Progress(disable=True),
            unpack_progress=Progress(disable=True),
        )

        assert descriptor.workspace == target
        assert (target / "GlamorousToolkit.image").read_bytes() == b"image"
        assert (target / "gt-extra" / "feenk" / "notes.txt").exists()
        assert (target / host.executable_path).exists()
        assert WorkspaceDescriptor.load(target).app_version == Version(1, 0, 7)
