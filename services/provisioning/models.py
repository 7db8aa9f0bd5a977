"""Domain models for storefront provisioning."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

FileEncoding = Literal["utf-8", "base64"]


class TemplateKind(str, Enum):
    """Template directories under ``templates/`` in the source repository."""

    BASE = "vue-starter-template"
    EXTENDED = "vue-starter-template-extended"


@dataclass
class TemplateFile:
    """One file of a template tree.

    ``content`` is text for ``utf-8`` files and base64 text for binary files.
    """

    path: str
    content: str
    encoding: FileEncoding = "utf-8"


@dataclass(frozen=True)
class FetchFailure:
    """A leaf that was listed but could not be downloaded."""

    path: str
    reason: str


class FileSet:
    """Path-unique collection of template files; the last write for a path wins."""

    def __init__(self, files: Iterable[TemplateFile] = ()):
        self._files: dict[str, TemplateFile] = {}
        self.fetch_failures: list[FetchFailure] = []
        for file in files:
            self.put(file)

    def put(self, file: TemplateFile) -> None:
        self._files[file.path] = file

    def get(self, path: str) -> TemplateFile | None:
        return self._files.get(path)

    def find(self, *paths: str, suffix: str | None = None) -> TemplateFile | None:
        """First file matching one of ``paths`` exactly, else the first ending with ``suffix``."""
        for path in paths:
            if path in self._files:
                return self._files[path]
        if suffix:
            for path in sorted(self._files):
                if path.endswith(suffix):
                    return self._files[path]
        return None

    def paths(self) -> list[str]:
        return sorted(self._files)

    def copy(self) -> "FileSet":
        clone = FileSet(
            TemplateFile(path=f.path, content=f.content, encoding=f.encoding)
            for f in self._files.values()
        )
        clone.fetch_failures = list(self.fetch_failures)
        return clone

    @property
    def is_complete(self) -> bool:
        return not self.fetch_failures

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __iter__(self) -> Iterator[TemplateFile]:
        for path in sorted(self._files):
            yield self._files[path]

    def __len__(self) -> int:
        return len(self._files)


def merge_file_sets(base: FileSet, extension: FileSet) -> FileSet:
    """Union of both sets; on a path collision the extension's file wins."""
    merged = FileSet(base)
    for file in extension:
        merged.put(file)
    merged.fetch_failures = [*base.fetch_failures, *extension.fetch_failures]
    return merged


@dataclass(frozen=True)
class BrandingSpec:
    """Brand inputs: color token overrides and an optional SVG logo."""

    colors: dict[str, str] = field(default_factory=dict)
    logo_svg: str | None = None


@dataclass
class BrandingResult:
    modified_paths: set[str] = field(default_factory=set)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RepoTarget:
    """Destination repository on the source host."""

    owner: str
    repo: str
    private: bool = True
    description: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class EnsureRepoResult:
    repo_url: str
    clone_url: str
    created: bool


@dataclass(frozen=True)
class PublishResult:
    """Outcome of a successful publish: the branch ref points at ``commit_sha``."""

    commit_sha: str
    commit_url: str
    files_committed: int
    tree_sha: str
    base_commit_sha: str | None
    branch: str
    repo: EnsureRepoResult


@dataclass(frozen=True)
class EnvironmentVariable:
    key: str
    value: str
    target: tuple[str, ...] = ("production", "preview", "development")


@dataclass(frozen=True)
class ProjectSpec:
    """Hosting project to ensure for a destination repository."""

    project_name: str
    framework: str | None = None
    environment_variables: tuple[EnvironmentVariable, ...] = ()
    link_repository: bool = True


@dataclass(frozen=True)
class DeploymentProject:
    project_id: str
    project_name: str
    project_url: str
    linked_repo: str | None
    created: bool


@dataclass(frozen=True)
class Deployment:
    deployment_id: str
    deployment_url: str
    inspector_url: str
    status: str


@dataclass
class ProvisionResult:
    project: DeploymentProject
    deployment: Deployment | None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class StorefrontOrder:
    """Everything needed to create, brand, publish and deploy one storefront."""

    store_id: str
    brand_name: str
    target: RepoTarget
    project: ProjectSpec
    branding: BrandingSpec = field(default_factory=BrandingSpec)
    template: TemplateKind = TemplateKind.EXTENDED
    template_ref: str = "main"
    branch: str = "main"
    commit_message: str | None = None
