"""Template resolution: fetch template trees from GitHub and merge them.

The extended template is designed to be layered over the base template in
a sibling directory. Resolving it fetches both trees concurrently, merges
them with the extension winning on path collisions, and strips the local
``extends`` reference so the result builds standalone.
"""

import asyncio
import base64
import re
from dataclasses import dataclass

from app.config import Settings
from app.core.logging import get_context_logger
from app.core.metrics import template_fetch_skips_total
from app.utils.exceptions import SourceFetchError, SourceShapeError, UpstreamAPIError
from services.provisioning.github_client import GitHubClient
from services.provisioning.models import (
    FetchFailure,
    FileSet,
    TemplateFile,
    TemplateKind,
    merge_file_sets,
)

BINARY_EXTENSIONS = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".ico",
    ".webp",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".otf",
)

NUXT_CONFIG_NAME = "nuxt.config.ts"

_EXTENDS_RE = re.compile(r"(?P<indent>[ \t]*)\bextends\s*:\s*(?P<value>\[[^\]]*\]|([\"'`])[^\"'`]*\3)[ \t]*,?")
_QUOTED_RE = re.compile(r"([\"'`])([^\"'`]*)\1")


def is_binary_path(path: str) -> bool:
    return path.lower().endswith(BINARY_EXTENSIONS)


def _is_local_reference(value: str) -> bool:
    return value.startswith("./") or value.startswith("../")


def strip_local_extends(source: str) -> str:
    """
    Remove local relative-path entries from ``extends`` in a Nuxt config.

    ``extends: ["../vue-starter-template", "@shopware/composables"]`` keeps
    only the package entry; an ``extends`` left empty is removed together
    with its line. Everything else is returned unchanged.
    """
    match = _EXTENDS_RE.search(source)
    if not match:
        return source

    value = match.group("value")
    if value.startswith("["):
        entries = [m.group(0) for m in _QUOTED_RE.finditer(value)]
        kept = [entry for entry in entries if not _is_local_reference(entry[1:-1])]
        if len(kept) == len(entries):
            return source
        if kept:
            replacement = value[: value.index("[") + 1] + ", ".join(kept) + "]"
            start, end = match.span("value")
            return source[:start] + replacement + source[end:]
    elif not _is_local_reference(value[1:-1]):
        return source

    start, end = match.span()
    line_end = source.find("\n", end)
    if line_end != -1 and not source[end:line_end].strip():
        end = line_end + 1
    line_start = source.rfind("\n", 0, start) + 1
    if not source[line_start:start].strip():
        start = line_start
    return source[:start] + source[end:]


@dataclass
class ResolvedTemplate:
    files: FileSet
    template: str
    ref: str

    @property
    def fetch_failures(self) -> list[FetchFailure]:
        return self.files.fetch_failures


class TemplateResolver:
    """Fetches template trees from the configured source repository."""

    def __init__(self, github: GitHubClient, settings: Settings):
        self.github = github
        self.owner = settings.template_repo_owner
        self.repo = settings.template_repo_name
        self.templates_root = settings.templates_root.strip("/")
        self.logger = get_context_logger(__name__)

    def template_path(self, kind: TemplateKind) -> str:
        return f"{self.templates_root}/{kind.value}"

    async def resolve(self, ref: str, kind: TemplateKind) -> ResolvedTemplate:
        """
        Resolve a template kind at ``ref`` into a flat, self-contained file set.

        Args:
            ref: Branch, tag or commit of the source repository
            kind: Template kind to resolve

        Returns:
            ResolvedTemplate: Files plus any leaves skipped because their download failed

        Raises:
            SourceFetchError: If a directory listing fails
            SourceShapeError: If a directory path turns out to be a file
        """
        if kind == TemplateKind.EXTENDED:
            base, extension = await asyncio.gather(
                self.fetch_tree(self.template_path(TemplateKind.BASE), ref),
                self.fetch_tree(self.template_path(TemplateKind.EXTENDED), ref),
            )
            files = merge_file_sets(base, extension)
            self._fix_nuxt_config(files)
        else:
            files = await self.fetch_tree(self.template_path(kind), ref)

        if files.fetch_failures:
            template_fetch_skips_total.labels(template=kind.value).inc(len(files.fetch_failures))
            self.logger.warning(
                "Template resolved with skipped files",
                template=kind.value,
                ref=ref,
                skipped=[failure.path for failure in files.fetch_failures],
            )

        self.logger.info(
            "Template resolved",
            template=kind.value,
            ref=ref,
            file_count=len(files),
            skipped_count=len(files.fetch_failures),
        )
        return ResolvedTemplate(files=files, template=kind.value, ref=ref)

    def _fix_nuxt_config(self, files: FileSet) -> None:
        nuxt_config = files.get(NUXT_CONFIG_NAME)
        if nuxt_config is None or nuxt_config.encoding != "utf-8":
            return
        fixed = strip_local_extends(nuxt_config.content)
        if fixed != nuxt_config.content:
            files.put(TemplateFile(path=nuxt_config.path, content=fixed, encoding="utf-8"))
            self.logger.info("Removed local extends reference from nuxt config")

    async def list_directory(self, path: str, ref: str) -> list[dict]:
        try:
            listing = await self.github.get_contents(self.owner, self.repo, path, ref)
        except UpstreamAPIError as e:
            raise SourceFetchError(
                f"GitHub API error: {e.status_code} for {path}",
                path=path,
                status_code=e.status_code,
            ) from e
        if not isinstance(listing, list):
            raise SourceShapeError(f"Expected directory at {path}, got file", path=path)
        return listing

    async def fetch_tree(self, base_path: str, ref: str) -> FileSet:
        """Recursively fetch every file below ``base_path``, keyed by path relative to it."""
        files = FileSet()
        await self._fetch_into(files, base_path, ref, relative_path="")
        return files

    async def _fetch_into(self, files: FileSet, base_path: str, ref: str, relative_path: str) -> None:
        full_path = f"{base_path}/{relative_path}" if relative_path else base_path
        for item in await self.list_directory(full_path, ref):
            item_relative = f"{relative_path}/{item['name']}" if relative_path else item["name"]
            item_type = item.get("type")

            if item_type == "dir":
                await self._fetch_into(files, base_path, ref, item_relative)
            elif item_type == "file":
                try:
                    files.put(await self._fetch_file(item, f"{base_path}/{item_relative}", item_relative, ref))
                except (UpstreamAPIError, UnicodeDecodeError, ValueError) as e:
                    files.fetch_failures.append(FetchFailure(path=item_relative, reason=str(e)))
                    self.logger.warning("Skipping template file", path=item_relative, error=str(e))

    async def _fetch_file(self, item: dict, full_path: str, relative_path: str, ref: str) -> TemplateFile:
        download_url = item.get("download_url")

        if is_binary_path(item["name"]):
            if not download_url:
                raise ValueError(f"No download URL for binary file {full_path}")
            response = await self.github.download(download_url)
            return TemplateFile(
                path=relative_path,
                content=base64.b64encode(response.content).decode("ascii"),
                encoding="base64",
            )

        data = await self.github.get_contents(self.owner, self.repo, full_path, ref)
        if not isinstance(data, dict):
            raise SourceShapeError(f"Expected file at {full_path}, got directory", path=full_path)

        if data.get("encoding") == "base64" and data.get("content"):
            text = base64.b64decode(data["content"]).decode("utf-8")
        elif data.get("download_url") or download_url:
            response = await self.github.download(data.get("download_url") or download_url)
            text = response.text
        else:
            raise ValueError(f"Cannot fetch content for {full_path}")

        return TemplateFile(path=relative_path, content=text, encoding="utf-8")
