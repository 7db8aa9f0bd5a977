"""Unit tests for the branding transformer."""

from services.provisioning.branding import (
    apply_branding,
    find_colors_block,
    replace_color_token,
    update_theme_colors,
)
from services.provisioning.models import BrandingSpec, FileSet, TemplateFile
from tests.fakes import EXTENDED_UNO_CONFIG


def make_files(**extra: str) -> FileSet:
    files = FileSet(
        [
            TemplateFile(path="uno.config.ts", content=EXTENDED_UNO_CONFIG),
            TemplateFile(path="app.vue", content="<template />"),
        ]
    )
    for path, content in extra.items():
        files.put(TemplateFile(path=path, content=content))
    return files


class TestColorsBlock:
    """Test locating the colors block."""

    def test_block_spans_nested_objects(self):
        start, end = find_colors_block(EXTENDED_UNO_CONFIG)
        block = EXTENDED_UNO_CONFIG[start:end]

        assert "surface" in block
        assert "breakpoints" not in block

    def test_braces_inside_strings_are_ignored(self):
        source = 'colors: { primary: "}", secondary: "#fff" }, other: 1'
        start, end = find_colors_block(source)

        assert source[start:end] == ' primary: "}", secondary: "#fff" '

    def test_no_block(self):
        assert find_colors_block("export default {}") is None


class TestReplaceColorToken:
    """Test token rewriting."""

    def test_flat_token_keeps_quote_style(self):
        block, hit = replace_color_token("  primary: '#000',\n", "primary", "#ff0066")

        assert hit is True
        assert block == "  primary: '#ff0066',\n"

    def test_nested_default(self):
        source = "'brand-secondary': {\n  DEFAULT: '#111111',\n  light: '#222222',\n}"
        block, hit = replace_color_token(source, "brand-secondary", "#00aa00")

        assert hit is True
        assert "DEFAULT: '#00aa00'" in block
        assert "light: '#222222'" in block

    def test_flat_form_wins_over_nested(self):
        source = 'primary: "#000",\nprimaryDark: { DEFAULT: "#111" }'
        block, hit = replace_color_token(source, "primary", "#abc")

        assert block == 'primary: "#abc",\nprimaryDark: { DEFAULT: "#111" }'

    def test_token_prefix_does_not_match_longer_token(self):
        block, hit = replace_color_token('secondary-primary: "#000"', "primary", "#abc")

        assert hit is False
        assert block == 'secondary-primary: "#000"'

    def test_unknown_token(self):
        block, hit = replace_color_token('primary: "#000"', "accent", "#abc")

        assert hit is False
        assert block == 'primary: "#000"'


class TestUpdateThemeColors:
    """Test whole-file color updates."""

    def test_only_touched_values_change(self):
        updated, matched = update_theme_colors(
            EXTENDED_UNO_CONFIG, {"primary": "#ff0066", "brand-secondary": "#00aa00"}
        )

        assert matched == ["primary", "brand-secondary"]
        expected = EXTENDED_UNO_CONFIG.replace('"#000000"', '"#ff0066"').replace(
            "DEFAULT: '#111111'", "DEFAULT: '#00aa00'"
        )
        assert updated == expected

    def test_values_outside_colors_block_untouched(self):
        source = 'const primary: "#000" = 1;\ncolors: { primary: "#111" }\n'
        updated, _ = update_theme_colors(source, {"primary": "#fff"})

        assert updated == 'const primary: "#000" = 1;\ncolors: { primary: "#fff" }\n'


class TestApplyBranding:
    """Test apply_branding on file sets."""

    def test_empty_spec_is_a_no_op(self):
        files = make_files()
        before = {f.path: f.content for f in files}

        result = apply_branding(files, BrandingSpec())

        assert result.modified_paths == set()
        assert result.warnings == []
        assert {f.path: f.content for f in files} == before

    def test_colors_applied(self):
        files = make_files()

        result = apply_branding(files, BrandingSpec(colors={"primary": "#ff0066"}))

        assert result.modified_paths == {"uno.config.ts"}
        assert result.warnings == []
        assert 'primary: "#ff0066"' in files.get("uno.config.ts").content

    def test_absent_token_warns_without_changes(self):
        files = make_files()

        result = apply_branding(files, BrandingSpec(colors={"accent": "#ff0066"}))

        assert len(files) == 2
        assert files.get("uno.config.ts").content == EXTENDED_UNO_CONFIG
        assert result.modified_paths == set()
        assert len(result.warnings) == 1
        assert "no colors were updated" in result.warnings[0]

    def test_partial_match_is_not_a_warning(self):
        files = make_files()

        result = apply_branding(files, BrandingSpec(colors={"primary": "#123456", "accent": "#fff"}))

        assert result.warnings == []
        assert result.modified_paths == {"uno.config.ts"}

    def test_missing_theme_file_warns(self):
        files = FileSet([TemplateFile(path="app.vue", content="<template />")])

        result = apply_branding(files, BrandingSpec(colors={"primary": "#ff0066"}))

        assert result.modified_paths == set()
        assert "uno.config.ts not found" in result.warnings[0]

    def test_theme_found_by_suffix(self):
        files = FileSet([TemplateFile(path="theme/uno.config.ts", content=EXTENDED_UNO_CONFIG)])

        result = apply_branding(files, BrandingSpec(colors={"primary": "#ff0066"}))

        assert result.modified_paths == {"theme/uno.config.ts"}

    def test_logo_added_when_absent(self):
        files = make_files()

        result = apply_branding(files, BrandingSpec(logo_svg="<svg>brand</svg>"))

        assert result.modified_paths == {"public/logo.svg"}
        assert files.get("public/logo.svg").content == "<svg>brand</svg>"
        assert len(files) == 3

    def test_logo_overwrites_root_logo(self):
        files = make_files(**{"logo.svg": "<svg>old</svg>"})

        result = apply_branding(files, BrandingSpec(logo_svg="<svg>brand</svg>"))

        assert result.modified_paths == {"logo.svg"}
        assert files.get("logo.svg").content == "<svg>brand</svg>"
        assert "public/logo.svg" not in files

    def test_colors_without_theme_do_not_block_logo(self):
        files = FileSet([TemplateFile(path="app.vue", content="")])

        result = apply_branding(
            files, BrandingSpec(colors={"primary": "#fff"}, logo_svg="<svg />")
        )

        assert result.modified_paths == {"public/logo.svg"}
        assert len(result.warnings) == 1
