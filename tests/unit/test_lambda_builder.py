"""Tests for the deployment package builder."""

import io
import logging
import shutil
import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from lambdaship.exceptions import CleanupError, NoEntryPointError, PackagingError
from lambdaship.infra.lambda_builder import (
    build_package,
    detect_project,
    remove_tree,
    staging_directory,
    write_archive,
)
from lambdaship.models import DeploymentRequest, ProjectKind


def _mock_builder_build(
    source_dir: str,
    artifacts_dir: str,
    scratch_dir: str,
    manifest_path: str,
    runtime: str,
    architecture: object,
    **kwargs: object,
) -> None:
    """Mock LambdaBuilder.build(): copies sources and installs one fake module."""
    artifacts = Path(artifacts_dir)
    shutil.copytree(source_dir, artifacts, dirs_exist_ok=True)
    dep_dir = artifacts / "node_modules" / "left-pad"
    dep_dir.mkdir(parents=True, exist_ok=True)
    (dep_dir / "index.js").write_text("module.exports = () => '';\n")


class TestDetectProject:
    """Tests for entry-point detection."""

    def test_index_js(self, node_project: Path) -> None:
        """index.js is found for Node.js runtimes."""
        layout = detect_project(node_project, ProjectKind.NODEJS)
        assert layout.entry_point == node_project / "index.js"
        assert layout.manifest is None
        assert layout.lock_file is None

    def test_rule_order(self, tmp_path: Path) -> None:
        """The first matching rule wins."""
        (tmp_path / "handler.js").write_text("")
        (tmp_path / "lambda.js").write_text("")
        layout = detect_project(tmp_path, ProjectKind.NODEJS)
        assert layout.entry_point.name == "lambda.js"
        assert layout.canonical_entry_name == "index.js"

    def test_manifest_and_lock_file(self, node_project: Path) -> None:
        """package.json and package-lock.json are picked up."""
        (node_project / "package.json").write_text('{"name": "fn1"}')
        (node_project / "package-lock.json").write_text("{}")
        layout = detect_project(node_project, ProjectKind.NODEJS)
        assert layout.manifest == node_project / "package.json"
        assert layout.lock_file == node_project / "package-lock.json"

    def test_python_project(self, tmp_path: Path) -> None:
        """Python runtimes look for Python files and requirements.txt."""
        (tmp_path / "lambda_function.py").write_text("def handler(e, c): return e\n")
        (tmp_path / "requirements.txt").write_text("requests\n")
        layout = detect_project(tmp_path, ProjectKind.PYTHON)
        assert layout.entry_point.name == "lambda_function.py"
        assert layout.manifest == tmp_path / "requirements.txt"
        assert layout.canonical_entry_name == "index.py"

    def test_other_family_ignored(self, node_project: Path) -> None:
        """A Node.js file does not satisfy a Python runtime."""
        with pytest.raises(NoEntryPointError) as exc_info:
            detect_project(node_project, ProjectKind.PYTHON)
        assert exc_info.value.candidates == ["index.py", "lambda_function.py", "handler.py"]

    def test_no_entry_point(self, empty_project: Path) -> None:
        """An empty working directory raises NoEntryPointError."""
        with pytest.raises(NoEntryPointError, match="No function file found"):
            detect_project(empty_project, ProjectKind.NODEJS)


class TestWriteArchive:
    """Tests for deterministic archives."""

    def test_deterministic(self, tmp_path: Path) -> None:
        """Same inputs produce byte-identical archives."""
        root = tmp_path / "root"
        (root / "lib").mkdir(parents=True)
        (root / "index.js").write_text("exports.handler = 1;\n")
        (root / "lib" / "util.js").write_text("module.exports = 2;\n")

        first = write_archive(root, tmp_path / "a.zip")
        # Touching mtimes must not change the archive
        (root / "index.js").touch()
        second = write_archive(root, tmp_path / "b.zip")

        assert first == second

    def test_entries_sorted_with_fixed_timestamps(self, tmp_path: Path) -> None:
        """Entries are sorted and stamped 1980-01-01."""
        root = tmp_path / "root"
        root.mkdir()
        for name in ("b.js", "a.js", "index.js"):
            (root / name).write_text(name)

        data = write_archive(root, tmp_path / "out" / "fn.zip")

        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.namelist() == ["a.js", "b.js", "index.js"]
            assert all(info.date_time == (1980, 1, 1, 0, 0, 0) for info in zf.infolist())
        assert (tmp_path / "out" / "fn.zip").exists()


class TestStagingDirectory:
    """Tests for staging cleanup."""

    def test_removed_on_success(self) -> None:
        """The staging area is gone after the block."""
        with staging_directory() as path:
            (path / "file").write_text("x")
        assert not path.exists()

    def test_removed_on_error(self) -> None:
        """The staging area is removed even when the body raises."""
        with pytest.raises(RuntimeError), staging_directory() as path:
            raise RuntimeError("boom")
        assert not path.exists()

    def test_cleanup_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        """A failed removal is logged and does not replace the result."""
        with (
            patch(
                "lambdaship.infra.lambda_builder.remove_tree",
                side_effect=CleanupError("/tmp/x", "busy"),
            ),
            caplog.at_level(logging.WARNING, logger="lambdaship.infra.lambda_builder"),
        ):
            with staging_directory() as path:
                pass
        shutil.rmtree(path, ignore_errors=True)
        assert "Staging cleanup failed" in caplog.text

    def test_remove_tree_wraps_os_error(self, tmp_path: Path) -> None:
        """remove_tree turns OSError into CleanupError."""
        with patch("shutil.rmtree", side_effect=PermissionError("denied")):
            with pytest.raises(CleanupError, match="denied"):
                remove_tree(tmp_path)

    def test_remove_tree_missing_is_ok(self, tmp_path: Path) -> None:
        """Removing a missing tree is not an error."""
        remove_tree(tmp_path / "does-not-exist")


class TestBuildPackage:
    """Tests for build_package."""

    def test_entry_point_only(self, node_project: Path, tmp_path: Path) -> None:
        """Without a manifest the package holds only the canonical entry point."""
        request = DeploymentRequest(function_name="fn1")
        layout = detect_project(node_project, request.kind)
        out = tmp_path / "out"

        with build_package(request, layout, out) as pkg:
            assert pkg.path == out / "fn1.zip"
            assert pkg.path.exists()
            assert pkg.size_bytes == len(pkg.zip_bytes)
            with zipfile.ZipFile(io.BytesIO(pkg.zip_bytes)) as zf:
                assert zf.namelist() == ["index.js"]

        assert not (out / "fn1.zip").exists()

    def test_renames_entry_point(self, tmp_path: Path) -> None:
        """handler.js is stored as index.js."""
        (tmp_path / "handler.js").write_text("exports.handler = 1;\n")
        request = DeploymentRequest(function_name="fn1")
        layout = detect_project(tmp_path, request.kind)

        with build_package(request, layout, tmp_path / "out") as pkg:
            with zipfile.ZipFile(io.BytesIO(pkg.zip_bytes)) as zf:
                assert zf.namelist() == ["index.js"]

    def test_keep_archive(self, node_project: Path, tmp_path: Path) -> None:
        """keep=True leaves the archive on disk."""
        request = DeploymentRequest(function_name="fn1")
        layout = detect_project(node_project, request.kind)

        with build_package(request, layout, tmp_path, keep=True) as pkg:
            pass
        assert pkg.path.exists()

    def test_rebuild_is_identical(self, node_project: Path, tmp_path: Path) -> None:
        """Rebuilding unchanged sources gives the same bytes."""
        request = DeploymentRequest(function_name="fn1")
        layout = detect_project(node_project, request.kind)

        with build_package(request, layout, tmp_path) as first:
            first_bytes = first.zip_bytes
        with build_package(request, layout, tmp_path) as second:
            assert second.zip_bytes == first_bytes

    def test_archive_removed_on_error(self, node_project: Path, tmp_path: Path) -> None:
        """The archive is removed when the body raises."""
        request = DeploymentRequest(function_name="fn1")
        layout = detect_project(node_project, request.kind)

        with pytest.raises(RuntimeError):
            with build_package(request, layout, tmp_path):
                raise RuntimeError("upload failed")
        assert not (tmp_path / "fn1.zip").exists()

    def test_installs_dependencies_with_manifest(self, node_project: Path, tmp_path: Path) -> None:
        """With package.json, aws-lambda-builders installs the dependency closure."""
        (node_project / "package.json").write_text('{"name": "fn1"}')
        request = DeploymentRequest(function_name="fn1")
        layout = detect_project(node_project, request.kind)

        with patch("aws_lambda_builders.builder.LambdaBuilder") as mock_builder_cls:
            mock_builder_cls.return_value.build.side_effect = _mock_builder_build
            with build_package(request, layout, tmp_path) as pkg:
                with zipfile.ZipFile(io.BytesIO(pkg.zip_bytes)) as zf:
                    names = zf.namelist()

        mock_builder_cls.assert_called_once_with(
            language="nodejs",
            dependency_manager="npm",
            application_framework=None,
        )
        build_kwargs = mock_builder_cls.return_value.build.call_args.kwargs
        assert build_kwargs["runtime"] == "nodejs18.x"
        assert build_kwargs["manifest_path"].endswith("package.json")
        assert "index.js" in names
        assert "node_modules/left-pad/index.js" in names

    def test_python_workflow(self, tmp_path: Path) -> None:
        """Python projects use the pip workflow."""
        (tmp_path / "index.py").write_text("def handler(e, c): return e\n")
        (tmp_path / "requirements.txt").write_text("requests\n")
        request = DeploymentRequest(function_name="fn1", runtime="python3.12")
        layout = detect_project(tmp_path, request.kind)

        with patch("aws_lambda_builders.builder.LambdaBuilder") as mock_builder_cls:
            mock_builder_cls.return_value.build.side_effect = _mock_builder_build
            with build_package(request, layout, tmp_path / "out"):
                pass

        mock_builder_cls.assert_called_once_with(
            language="python",
            dependency_manager="pip",
            application_framework=None,
        )

    def test_builder_failure(self, node_project: Path, tmp_path: Path) -> None:
        """LambdaBuilderError becomes PackagingError."""
        from aws_lambda_builders.exceptions import LambdaBuilderError

        (node_project / "package.json").write_text('{"name": "fn1"}')
        request = DeploymentRequest(function_name="fn1")
        layout = detect_project(node_project, request.kind)

        with patch("aws_lambda_builders.builder.LambdaBuilder") as mock_builder_cls:
            mock_builder_cls.return_value.build.side_effect = LambdaBuilderError(
                message="npm not found"
            )
            with pytest.raises(PackagingError, match="Dependency installation failed"):
                with build_package(request, layout, tmp_path):
                    pass

        assert not (tmp_path / "fn1.zip").exists()

    def test_python_builder_failure_names_interpreter(self, tmp_path: Path) -> None:
        """A failed pip workflow points at the missing local interpreter."""
        from aws_lambda_builders.exceptions import LambdaBuilderError

        (tmp_path / "index.py").write_text("def handler(e, c): return e\n")
        (tmp_path / "requirements.txt").write_text("requests\n")
        request = DeploymentRequest(function_name="fn1", runtime="python3.12")
        layout = detect_project(tmp_path, request.kind)

        with patch("aws_lambda_builders.builder.LambdaBuilder") as mock_builder_cls:
            mock_builder_cls.return_value.build.side_effect = LambdaBuilderError(
                message="Binary validation failed for python"
            )
            with pytest.raises(PackagingError) as exc_info:
                with build_package(request, layout, tmp_path / "out"):
                    pass

        assert "python3.12 interpreter on PATH" in str(exc_info.value)

    def test_unreadable_source_is_packaging_error(
        self, node_project: Path, tmp_path: Path
    ) -> None:
        """A failed copy into the staging area becomes PackagingError."""
        request = DeploymentRequest(function_name="fn1")
        layout = detect_project(node_project, request.kind)

        with patch.object(shutil, "copy2", side_effect=PermissionError("denied")):
            with pytest.raises(PackagingError, match="Cannot stage sources"):
                with build_package(request, layout, tmp_path):
                    pass

        assert not (tmp_path / "fn1.zip").exists()
