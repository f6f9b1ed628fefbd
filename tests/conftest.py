"""Pytest fixtures for crate-release tests.

Provides common fixtures for:
- Temporary directories and git repositories
- A three-crate Cargo workspace (a <- b <- c) built without cargo
- An in-memory registry index
"""

import logging
import os
import subprocess
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from crate_release.cargo.metadata import CargoDependency, CargoPackage, Workspace
from crate_release.config.models import ReleaseConfig
from crate_release.plan import Dependent, PackageRelease
from crate_release.utils.version import Version


@pytest.fixture
def temp_dir(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a temporary directory for tests.

    Yields:
        Path to temporary directory
    """
    yield tmp_path


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout


@pytest.fixture
def git_repo(temp_dir: Path) -> Path:
    """Create a git repository with one commit.

    Returns:
        Path to repository root
    """
    repo = temp_dir / "repo"
    repo.mkdir()
    git(repo, "init", "--initial-branch=main")
    git(repo, "config", "user.email", "test@test.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")
    (repo / "README.md").write_text("# test\n")
    git(repo, "add", ".")
    git(repo, "commit", "-m", "Initial commit")
    return repo


class FakeIndex:
    """In-memory stand-in for CratesIndex."""

    def __init__(self, published: dict[str, set[str]] | None = None) -> None:
        self.published = {name: set(v) for name, v in (published or {}).items()}
        self.updates: list[str | None] = []

    def has_crate(self, name: str) -> bool:
        return name in self.published

    def is_published(self, name: str, version: str) -> bool:
        return version in self.published.get(name, set())

    def update(self, name: str | None = None) -> None:
        self.updates.append(name)

    def add(self, name: str, version: str) -> None:
        self.published.setdefault(name, set()).add(version)


@pytest.fixture
def fake_index() -> FakeIndex:
    return FakeIndex()


MANIFESTS = {
    "a": '[package]\nname = "a"\nversion = "{version}"\nedition = "2021"\n',
    "b": (
        '[package]\nname = "b"\nversion = "{version}"\nedition = "2021"\n\n'
        '[dependencies]\na = {{ path = "../a", version = "{version}" }}\n'
    ),
    "c": (
        '[package]\nname = "c"\nversion = "{version}"\nedition = "2021"\n\n'
        "[dependencies]\n"
        'b = {{ path = "../b", version = "{version}" }}\n'
    ),
}


def write_workspace(root: Path, version: str = "1.0.0") -> Workspace:
    """Write a virtual workspace a <- b <- c and describe it as cargo would."""
    (root / "Cargo.toml").write_text('[workspace]\nmembers = ["a", "b", "c"]\n')
    members = []
    deps = {"a": [], "b": ["a"], "c": ["b"]}
    for name, template in MANIFESTS.items():
        crate = root / name
        (crate / "src").mkdir(parents=True, exist_ok=True)
        (crate / "src" / "lib.rs").write_text("")
        (crate / "Cargo.toml").write_text(template.format(version=version))
        members.append(
            CargoPackage(
                id=f"{name} {version} (path+file://{crate})",
                name=name,
                version=version,
                manifest_path=crate / "Cargo.toml",
                dependencies=[
                    CargoDependency(name=d, req=f"^{version}", path=root / d)
                    for d in deps[name]
                ],
                target_kinds={"lib"},
            )
        )
    return Workspace(root=root, members=members)


def make_packages(
    workspace: Workspace, config: ReleaseConfig | None = None
) -> dict[str, PackageRelease]:
    """PackageRelease objects for every member, in dependency order."""
    config = config or ReleaseConfig()
    packages = {}
    for member in workspace.members:
        dependents = [
            Dependent(name=m.name, manifest_path=m.manifest_path, req=member.version)
            for m in workspace.members
            if any(d.name == member.name for d in m.dependencies)
        ]
        packages[member.name] = PackageRelease(
            name=member.name,
            manifest_path=member.manifest_path,
            package_root=member.package_root,
            is_root=False,
            has_bin=False,
            config=config,
            initial_version=Version.parse(member.version),
            dependents=dependents,
            dependencies=[d.name for d in member.dependencies],
        )
    return packages


@pytest.fixture
def workspace(temp_dir: Path) -> Workspace:
    root = temp_dir / "ws"
    root.mkdir()
    return write_workspace(root)


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Undo configure_logging() so caplog sees crate_release records."""
    yield
    logger = logging.getLogger("crate_release")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove crate-release environment variables during the test."""
    for key in list(os.environ):
        if key.startswith("CRATE_RELEASE_") or key == "PUBLISH_GRACE_SLEEP":
            monkeypatch.delenv(key)


@pytest.fixture
def run_git() -> Callable[..., str]:
    """Run git in a directory and return its stdout."""
    return git


@pytest.fixture
def release_packages() -> Callable[..., dict[str, PackageRelease]]:
    """Factory building PackageRelease objects for a Workspace."""
    return make_packages


@pytest.fixture
def repo_workspace(git_repo: Path) -> Workspace:
    """The a <- b <- c workspace committed at the root of a git repository.

    Returns:
        Workspace whose root is the repository root
    """
    ws = write_workspace(git_repo)
    git(git_repo, "add", ".")
    git(git_repo, "commit", "-m", "Add workspace")
    return ws
