"""Read-only inspection of templates and packages in the source repository.

Everything here is static text analysis of fetched files; no template code
is executed. The nuxt config summary is best-effort and regex based.
"""

import asyncio
import json
import re
from typing import Any

from app.config import Settings
from app.core.logging import get_context_logger
from app.utils.exceptions import SourceFetchError, SourceShapeError, UpstreamAPIError
from services.provisioning.branding import THEME_FILE, find_colors_block
from services.provisioning.github_client import GitHubClient
from services.provisioning.models import TemplateKind

README_EXCERPT_CHARS = 2000
RUNTIME_CONFIG_KEY_LIMIT = 200
PACKAGE_NAME_LIMIT = 200

_NUXT_EXTENDS_RE = re.compile(r"\bextends\s*:\s*(\[[^\]]+\]|[\"'`][^\"'`]+[\"'`])")
_NUXT_MODULES_RE = re.compile(r"\bmodules\s*:\s*\[([\s\S]*?)\]")
_NUXT_RUNTIME_RE = re.compile(r"\bruntimeConfig\s*:\s*\{([\s\S]*?)\}\s*,")
_QUOTED_VALUE_RE = re.compile(r"[\"'`]([^\"'`]+)[\"'`]")
_RUNTIME_KEY_RE = re.compile(r"\n\s*([A-Za-z0-9_]+)\s*:")
_TOKEN_KEY_RE = re.compile(r"[\"']?([A-Za-z0-9_-]+)[\"']?\s*:")

_RAW_HINTS = ("experimental", "devtools", "vite", "typescript")

_CAPABILITY_DIRS = (
    ("components", "Vue components structure"),
    ("pages", "Nuxt pages routing"),
    ("composables", "Nuxt composables"),
    ("server", "Server routes / Nitro server directory"),
)


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def parse_nuxt_config_summary(source: str) -> dict[str, Any]:
    """Best-effort summary of a ``nuxt.config.ts`` source."""
    summary: dict[str, Any] = {
        "extends": None,
        "modules": [],
        "runtimeConfigKeys": [],
        "routeRulesPresent": bool(re.search(r"\brouteRules\s*:", source)),
        "nitroPresent": bool(re.search(r"\bnitro\s*:", source)),
        "i18nPresent": bool(re.search(r"\bi18n\s*:", source)) or "@nuxtjs/i18n" in source,
        "rawHints": [hint for hint in _RAW_HINTS if re.search(rf"\b{hint}\s*:", source)],
    }

    match = _NUXT_EXTENDS_RE.search(source)
    if match:
        summary["extends"] = match.group(1).strip()

    match = _NUXT_MODULES_RE.search(source)
    if match:
        summary["modules"] = _unique(_QUOTED_VALUE_RE.findall(match.group(1)))

    match = _NUXT_RUNTIME_RE.search(source)
    if match:
        keys = _unique(_RUNTIME_KEY_RE.findall(match.group(1)))
        summary["runtimeConfigKeys"] = keys[:RUNTIME_CONFIG_KEY_LIMIT]

    return summary


def extract_uno_color_tokens(source: str) -> list[str]:
    """
    Top-level token names of the first ``colors: { ... }`` block.

    Keys of nested token objects (``DEFAULT``, shades) are not tokens of
    their own and are skipped.
    """
    span = find_colors_block(source)
    if span is None:
        return []

    start, end = span
    block = source[start:end]
    tokens: list[str] = []
    depth = 0
    position = 0
    for match in _TOKEN_KEY_RE.finditer(block):
        segment = block[position : match.start()]
        depth += segment.count("{") - segment.count("}")
        position = match.start()
        if depth == 0:
            tokens.append(match.group(1))
    return _unique(tokens)


def summarize_package_json(pkg: dict[str, Any], *, extended: bool = False) -> dict[str, Any]:
    summary = {
        "name": pkg.get("name"),
        "version": pkg.get("version"),
        "description": pkg.get("description"),
        "dependencies": pkg.get("dependencies"),
        "devDependencies": pkg.get("devDependencies"),
        "peerDependencies": pkg.get("peerDependencies"),
    }
    if extended:
        summary["type"] = pkg.get("type")
        summary["exports"] = pkg.get("exports")
    return summary


def _set_diff(a: list[str], b: list[str]) -> dict[str, list[str]]:
    a_set, b_set = set(a), set(b)
    return {
        "onlyInA": [x for x in a if x not in b_set],
        "onlyInB": [x for x in b if x not in a_set],
        "inBoth": [x for x in a if x in b_set],
    }


def _names(paths: list[str]) -> list[str]:
    return [path.rsplit("/", 1)[-1] for path in paths]


def _flags(summary: dict[str, Any] | None) -> dict[str, bool]:
    summary = summary or {}
    return {
        "i18nPresent": summary.get("i18nPresent", False),
        "nitroPresent": summary.get("nitroPresent", False),
        "routeRulesPresent": summary.get("routeRulesPresent", False),
    }


class TemplateInspector:
    """Describes templates, packages and the theme of the source repository."""

    def __init__(self, github: GitHubClient, settings: Settings):
        self.github = github
        self.owner = settings.template_repo_owner
        self.repo = settings.template_repo_name
        self.templates_root = settings.templates_root.strip("/")
        self.packages_root = settings.packages_root.strip("/")
        self.logger = get_context_logger(__name__)

    async def _list(self, path: str, ref: str) -> list[dict[str, Any]]:
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

    async def _read_text(self, item: dict[str, Any] | None) -> str | None:
        if not item or not item.get("download_url"):
            return None
        try:
            response = await self.github.download(item["download_url"])
        except UpstreamAPIError as e:
            raise SourceFetchError(
                f"Failed to fetch {item.get('path')}: {e.status_code}",
                path=item.get("path", ""),
                status_code=e.status_code,
            ) from e
        return response.text

    @staticmethod
    def _file(items: list[dict[str, Any]], name: str) -> dict[str, Any] | None:
        for item in items:
            if item.get("type") == "file" and item.get("name", "").lower() == name.lower():
                return item
        return None

    def _parse_package_json(self, raw: str | None, path: str) -> dict[str, Any] | None:
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            self.logger.warning("Invalid package.json", path=path, error=str(e))
            return None

    async def fetch_uno_config(self, ref: str) -> str:
        """Source of the extended template's theme config at ``ref``."""
        path = f"{self.templates_root}/{TemplateKind.EXTENDED.value}/{THEME_FILE}"
        try:
            data = await self.github.get_contents(self.owner, self.repo, path, ref)
        except UpstreamAPIError as e:
            raise SourceFetchError(
                f"Failed to fetch {THEME_FILE} (status {e.status_code})",
                path=path,
                status_code=e.status_code,
            ) from e
        if not isinstance(data, dict):
            raise SourceShapeError(f"Expected file at {path}, got directory", path=path)
        text = await self._read_text(data)
        if text is None:
            raise SourceShapeError(f"No download URL for {path}", path=path)
        return text

    async def describe_uno_theme(self, ref: str = "main") -> dict[str, Any]:
        source = await self.fetch_uno_config(ref)
        return {"ref": ref, "colorTokens": extract_uno_color_tokens(source)}

    async def describe_template(self, kind: TemplateKind, ref: str = "main") -> dict[str, Any]:
        """
        Structure and key files of one template directory.

        Returns top-level files and dirs, a package.json summary, the nuxt
        config summary, a README excerpt and whether a theme config exists.
        """
        template_path = f"{self.templates_root}/{kind.value}"
        items = await self._list(template_path, ref)

        nuxt_config, package_raw, readme, uno_config = await asyncio.gather(
            self._read_text(self._file(items, "nuxt.config.ts")),
            self._read_text(self._file(items, "package.json")),
            self._read_text(self._file(items, "README.md")),
            self._read_text(self._file(items, THEME_FILE)),
        )
        package_json = self._parse_package_json(package_raw, template_path)

        return {
            "template": kind.value,
            "ref": ref,
            "structure": {
                "files": [i["path"] for i in items if i.get("type") == "file"],
                "dirs": [i["path"] for i in items if i.get("type") == "dir"],
            },
            "packageJson": summarize_package_json(package_json) if package_json else None,
            "nuxtConfigSummary": parse_nuxt_config_summary(nuxt_config) if nuxt_config else None,
            "readmeExcerpt": readme[:README_EXCERPT_CHARS] if readme else None,
            "unoConfigPresent": uno_config is not None,
            "fetchedFiles": {
                "nuxtConfig": nuxt_config is not None,
                "packageJson": package_json is not None,
                "readme": readme is not None,
                "unoConfig": uno_config is not None,
            },
        }

    async def describe_base_template(self, ref: str = "main") -> dict[str, Any]:
        """Base template description plus capabilities inferred from its layout."""
        info = await self.describe_template(TemplateKind.BASE, ref)
        summary = info["nuxtConfigSummary"] or {}
        dirs = info["structure"]["dirs"]

        capabilities = []
        if summary.get("modules"):
            capabilities.append("Nuxt modules configured")
        if summary.get("i18nPresent"):
            capabilities.append("i18n present (or referenced)")
        if summary.get("routeRulesPresent"):
            capabilities.append("routeRules present")
        if summary.get("nitroPresent"):
            capabilities.append("nitro config present")
        for dir_name, capability in _CAPABILITY_DIRS:
            if any(d.endswith(f"/{dir_name}") for d in dirs):
                capabilities.append(capability)

        info["capabilities"] = capabilities
        return info

    async def compare_templates(self, ref: str = "main") -> dict[str, Any]:
        """
        Describe both templates and diff them.

        Files and dirs are compared by name relative to their template
        directory.
        """
        base, extended = await asyncio.gather(
            self.describe_template(TemplateKind.BASE, ref),
            self.describe_template(TemplateKind.EXTENDED, ref),
        )
        base_nuxt = base["nuxtConfigSummary"] or {}
        ext_nuxt = extended["nuxtConfigSummary"] or {}

        return {
            "ref": ref,
            "base": base,
            "extended": extended,
            "diff": {
                "dirs": _set_diff(
                    _names(base["structure"]["dirs"]), _names(extended["structure"]["dirs"])
                ),
                "files": _set_diff(
                    _names(base["structure"]["files"]), _names(extended["structure"]["files"])
                ),
                "nuxt": {
                    "extends": {
                        "base": base_nuxt.get("extends"),
                        "extended": ext_nuxt.get("extends"),
                    },
                    "modules": _set_diff(base_nuxt.get("modules", []), ext_nuxt.get("modules", [])),
                    "runtimeConfigKeys": _set_diff(
                        base_nuxt.get("runtimeConfigKeys", []),
                        ext_nuxt.get("runtimeConfigKeys", []),
                    ),
                    "flags": {"base": _flags(base_nuxt), "extended": _flags(ext_nuxt)},
                },
                "uno": {
                    "baseUnoConfigPresent": base["unoConfigPresent"],
                    "extendedUnoConfigPresent": extended["unoConfigPresent"],
                },
            },
        }

    async def _describe_package(self, path: str, ref: str) -> dict[str, Any]:
        dir_name = path.rsplit("/", 1)[-1]
        try:
            items = await self._list(path, ref)
            package_raw = await self._read_text(self._file(items, "package.json"))
            readme = await self._read_text(self._file(items, "README.md"))
        except (SourceFetchError, SourceShapeError) as e:
            self.logger.warning("Package inspection failed", path=path, error=str(e))
            return {"path": path, "dirName": dir_name, "error": str(e)}

        package_json = self._parse_package_json(package_raw, path)
        return {
            "path": path,
            "dirName": dir_name,
            "packageJson": summarize_package_json(package_json, extended=True) if package_json else None,
            "readmeExcerpt": readme[:README_EXCERPT_CHARS] if readme else None,
            "fetchedFiles": {"packageJson": package_json is not None, "readme": readme is not None},
        }

    async def describe_packages(self, ref: str = "main") -> dict[str, Any]:
        """
        Summaries of every package directory under the packages root.

        A package whose files cannot be read is reported with an ``error``
        entry instead of failing the whole listing.
        """
        root = await self._list(self.packages_root, ref)
        packages = []
        for item in root:
            if item.get("type") == "dir":
                packages.append(await self._describe_package(item["path"], ref))

        return {"ref": ref, "packageCount": len(packages), "packages": packages}


def package_names(packages: dict[str, Any]) -> list[str]:
    """Published names of inspected packages, falling back to their directory names."""
    names = []
    for package in packages["packages"]:
        package_json = package.get("packageJson") or {}
        names.append(package_json.get("name") or package["dirName"])
    return names[:PACKAGE_NAME_LIMIT]
