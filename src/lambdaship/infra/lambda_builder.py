"""Build Lambda deployment packages from a function's working directory.

The working directory is probed once against an ordered rule list to find
the function file. That file is copied under a canonical name into a
temporary staging area together with the dependency manifest and lock
file (when present). When a manifest exists, aws-lambda-builders installs
the dependency closure for the Lambda target platform (npm for Node.js,
pip for Python) rather than for the host. The staging area is zipped
into ``<function>.zip``.

The archive is deterministic (sorted entries, fixed timestamps), so
rebuilding unchanged sources produces an identical CodeSha256.
"""

import logging
import shutil
import stat
import tempfile
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import CleanupError, NoEntryPointError, PackagingError
from ..models import DeploymentRequest, Package, ProjectKind, ProjectLayout
from ..naming import archive_name

logger = logging.getLogger(__name__)

# 1980-01-01 is the earliest timestamp a zip entry can hold
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


@dataclass(frozen=True)
class EntryPointRule:
    """A recognized function file name and the runtime family it belongs to."""

    filename: str
    kind: ProjectKind


# Evaluated in order; the first existing file wins.
ENTRY_POINT_RULES: tuple[EntryPointRule, ...] = (
    EntryPointRule("index.js", ProjectKind.NODEJS),
    EntryPointRule("lambda.js", ProjectKind.NODEJS),
    EntryPointRule("handler.js", ProjectKind.NODEJS),
    EntryPointRule("index.py", ProjectKind.PYTHON),
    EntryPointRule("lambda_function.py", ProjectKind.PYTHON),
    EntryPointRule("handler.py", ProjectKind.PYTHON),
)

# kind -> (manifest, lock file)
MANIFEST_FILES: dict[ProjectKind, tuple[str, str | None]] = {
    ProjectKind.NODEJS: ("package.json", "package-lock.json"),
    ProjectKind.PYTHON: ("requirements.txt", None),
}

# kind -> (aws-lambda-builders language, dependency manager)
_BUILDER_WORKFLOWS: dict[ProjectKind, tuple[str, str]] = {
    ProjectKind.NODEJS: ("nodejs", "npm"),
    ProjectKind.PYTHON: ("python", "pip"),
}


def detect_project(workdir: str | Path, kind: ProjectKind) -> ProjectLayout:
    """Probe ``workdir`` for the function file of a runtime family.

    Args:
        workdir: Directory holding the function source
        kind: Runtime family selected by the requested runtime

    Returns:
        The detected layout

    Raises:
        NoEntryPointError: If none of the recognized files exist
    """
    workdir = Path(workdir)
    candidates = [rule.filename for rule in ENTRY_POINT_RULES if rule.kind is kind]

    entry_point = next(
        (workdir / name for name in candidates if (workdir / name).is_file()),
        None,
    )
    if entry_point is None:
        raise NoEntryPointError(str(workdir), candidates)

    manifest_name, lock_name = MANIFEST_FILES[kind]
    manifest = workdir / manifest_name
    lock_file = workdir / lock_name if lock_name else None

    return ProjectLayout(
        kind=kind,
        entry_point=entry_point,
        manifest=manifest if manifest.is_file() else None,
        lock_file=lock_file if lock_file is not None and lock_file.is_file() else None,
    )


def remove_tree(path: Path) -> None:
    """Delete a directory tree.

    Raises:
        CleanupError: If the tree cannot be removed
    """
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise CleanupError(str(path), str(e)) from e


@contextmanager
def staging_directory() -> Iterator[Path]:
    """Temporary staging area that is removed on every exit path.

    Removal failures are logged and never replace the error (or result)
    of the body.
    """
    path = Path(tempfile.mkdtemp(prefix="lambdaship-"))
    try:
        yield path
    finally:
        try:
            remove_tree(path)
        except CleanupError as e:
            logger.warning("Staging cleanup failed: %s", e)


def _stage_sources(layout: ProjectLayout, source_dir: Path) -> None:
    """Copy the entry point (canonical name), manifest and lock file."""
    shutil.copy2(layout.entry_point, source_dir / layout.canonical_entry_name)
    if layout.manifest is not None:
        shutil.copy2(layout.manifest, source_dir / layout.manifest.name)
    if layout.lock_file is not None:
        shutil.copy2(layout.lock_file, source_dir / layout.lock_file.name)


def _install_dependencies(
    request: DeploymentRequest,
    layout: ProjectLayout,
    source_dir: Path,
    artifacts_dir: Path,
    scratch_dir: Path,
) -> None:
    """Materialize the dependency closure into ``artifacts_dir``."""
    from aws_lambda_builders.architecture import X86_64
    from aws_lambda_builders.builder import LambdaBuilder
    from aws_lambda_builders.exceptions import LambdaBuilderError

    assert layout.manifest is not None
    language, dependency_manager = _BUILDER_WORKFLOWS[layout.kind]

    logger.info("Installing %s dependencies from %s", dependency_manager, layout.manifest.name)
    builder = LambdaBuilder(
        language=language,
        dependency_manager=dependency_manager,
        application_framework=None,
    )
    try:
        builder.build(
            source_dir=str(source_dir),
            artifacts_dir=str(artifacts_dir),
            scratch_dir=str(scratch_dir),
            manifest_path=str(source_dir / layout.manifest.name),
            runtime=request.runtime,
            architecture=X86_64,
        )
    except LambdaBuilderError as e:
        reason = f"Dependency installation failed: {e}"
        if layout.kind is ProjectKind.PYTHON:
            # The pip workflow validates against a local interpreter of the target version
            reason += (
                f". The pip workflow needs a {request.runtime} interpreter on PATH;"
                " install it or deploy with a runtime matching the local Python"
            )
        raise PackagingError(request.function_name, reason) from e


def write_archive(root: Path, archive_path: Path) -> bytes:
    """Zip every file under ``root`` deterministically.

    Returns:
        The archive contents
    """
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    files = sorted(p for p in root.rglob("*") if p.is_file())

    with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for file_path in files:
            info = zipfile.ZipInfo(file_path.relative_to(root).as_posix(), _ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            executable = file_path.stat().st_mode & stat.S_IXUSR
            info.external_attr = (0o755 if executable else 0o644) << 16
            zf.writestr(info, file_path.read_bytes())

    return archive_path.read_bytes()


@contextmanager
def build_package(
    request: DeploymentRequest,
    layout: ProjectLayout,
    output_dir: str | Path,
    keep: bool = False,
) -> Iterator[Package]:
    """Build the deployment package for ``request``.

    Args:
        request: Deployment request (runtime and archive name)
        layout: Result of ``detect_project`` for the working directory
        output_dir: Directory the archive is written to
        keep: Keep the archive after the context exits

    Yields:
        The built package

    Raises:
        PackagingError: If dependencies cannot be installed or the archive
            cannot be written
    """
    archive_path = Path(output_dir) / archive_name(request.function_name)

    try:
        with staging_directory() as staging:
            source_dir = staging / "source"
            source_dir.mkdir()
            try:
                _stage_sources(layout, source_dir)
            except OSError as e:
                raise PackagingError(request.function_name, f"Cannot stage sources: {e}") from e

            root = source_dir
            if layout.manifest is not None:
                artifacts_dir = staging / "artifacts"
                scratch_dir = staging / "scratch"
                artifacts_dir.mkdir()
                scratch_dir.mkdir()
                _install_dependencies(request, layout, source_dir, artifacts_dir, scratch_dir)
                root = artifacts_dir
            else:
                manifest_name = MANIFEST_FILES[layout.kind][0]
                logger.info("No %s found, packaging the entry point only", manifest_name)

            try:
                zip_bytes = write_archive(root, archive_path)
            except OSError as e:
                raise PackagingError(request.function_name, f"Cannot write archive: {e}") from e

        logger.info("Deployment package created: %s (%d bytes)", archive_path, len(zip_bytes))
        yield Package(path=archive_path, layout=layout, zip_bytes=zip_bytes)
    finally:
        if not keep:
            try:
                archive_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to remove archive %s: %s", archive_path, e)
