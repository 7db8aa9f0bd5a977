"""Branding transformer: brand colors in uno.config.ts and the logo asset.

Edits are textual and scoped to the quoted values being replaced; the theme
file is source code, so everything around those values is preserved byte
for byte.
"""

import re

from app.core.logging import get_logger
from services.provisioning.models import BrandingResult, BrandingSpec, FileSet, TemplateFile

logger = get_logger(__name__)

THEME_FILE = "uno.config.ts"
LOGO_PATH = "public/logo.svg"
LOGO_FALLBACK_PATH = "logo.svg"

_COLORS_OPEN_RE = re.compile(r"\bcolors\s*:\s*\{")


def find_block(source: str, open_brace: int) -> int:
    """
    Index of the ``}`` closing the brace at ``open_brace``.

    Quoted strings and ``//`` / ``/* */`` comments are skipped. Returns -1
    when the block is unbalanced.
    """
    depth = 0
    i = open_brace
    length = len(source)
    while i < length:
        char = source[i]
        if char in "\"'`":
            i += 1
            while i < length and source[i] != char:
                if source[i] == "\\":
                    i += 1
                i += 1
        elif source.startswith("//", i):
            newline = source.find("\n", i)
            i = length if newline == -1 else newline
            continue
        elif source.startswith("/*", i):
            close = source.find("*/", i + 2)
            i = length if close == -1 else close + 2
            continue
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def find_colors_block(source: str) -> tuple[int, int] | None:
    """Span of the inside of the first ``colors: { ... }`` block, braces excluded."""
    match = _COLORS_OPEN_RE.search(source)
    if not match:
        return None
    open_brace = match.end() - 1
    close_brace = find_block(source, open_brace)
    if close_brace == -1:
        return None
    return open_brace + 1, close_brace


def _token_key(token: str) -> str:
    return rf"(?<![\w-])(?P<kq>[\"']?){re.escape(token)}(?P=kq)"


def replace_color_token(block: str, token: str, value: str) -> tuple[str, bool]:
    """
    Rewrite the value bound to ``token`` inside a colors block.

    The flat ``token: "value"`` form is tried first; only if it is absent is
    the ``DEFAULT`` entry of a nested ``token: { DEFAULT: "value" }`` object
    rewritten. The original quote character is kept.

    Returns:
        The updated block and whether anything matched
    """
    def rewrite(match: re.Match) -> str:
        return f"{match.group('head')}{match.group('q')}{value}{match.group('q')}"

    flat = re.compile(rf"(?P<head>{_token_key(token)}\s*:\s*)(?P<q>[\"'])[^\"'\n]*(?P=q)")
    updated, count = flat.subn(rewrite, block)
    if count:
        return updated, True

    nested = re.compile(
        rf"(?P<head>{_token_key(token)}\s*:\s*\{{[^}}]*?\bDEFAULT\s*:\s*)(?P<q>[\"'])[^\"'\n]*(?P=q)"
    )
    updated, count = nested.subn(rewrite, block)
    return updated, bool(count)


def update_theme_colors(source: str, colors: dict[str, str]) -> tuple[str, list[str]]:
    """
    Apply color overrides to a theme config source.

    Returns:
        The updated source and the tokens that matched an assignment
    """
    span = find_colors_block(source)
    if span is None:
        return source, []

    start, end = span
    block = source[start:end]
    matched: list[str] = []
    for token, value in colors.items():
        block, hit = replace_color_token(block, token, value)
        if hit:
            matched.append(token)

    return source[:start] + block + source[end:], matched


def apply_branding(files: FileSet, branding: BrandingSpec) -> BrandingResult:
    """
    Apply brand colors and logo to a file set in place.

    Never raises: problems are reported as warnings.

    Args:
        files: Resolved template files, mutated in place
        branding: Colors (token -> CSS color) and optional SVG logo

    Returns:
        BrandingResult: Paths that changed and warnings
    """
    result = BrandingResult()

    if branding.colors:
        theme = files.find(THEME_FILE, suffix=f"/{THEME_FILE}")
        if theme is None:
            result.warnings.append(f"{THEME_FILE} not found in template - colors not applied")
        else:
            updated, matched = update_theme_colors(theme.content, branding.colors)
            missing = [token for token in branding.colors if token not in matched]
            if not matched:
                result.warnings.append(
                    f"{THEME_FILE} found but no colors were updated - check color token names"
                )
            elif missing:
                logger.info("Color tokens not present in theme", unmatched=missing)
            if updated != theme.content:
                files.put(TemplateFile(path=theme.path, content=updated, encoding=theme.encoding))
                result.modified_paths.add(theme.path)

    if branding.logo_svg:
        existing = files.find(LOGO_PATH, LOGO_FALLBACK_PATH)
        logo_path = existing.path if existing else LOGO_PATH
        files.put(TemplateFile(path=logo_path, content=branding.logo_svg, encoding="utf-8"))
        result.modified_paths.add(logo_path)

    logger.debug(
        "Branding applied",
        modified=sorted(result.modified_paths),
        warning_count=len(result.warnings),
    )
    return result
