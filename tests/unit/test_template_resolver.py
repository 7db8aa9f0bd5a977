"""Unit tests for template resolution against the in-memory GitHub."""

import base64

import httpx
import pytest

from app.utils.exceptions import SourceFetchError, SourceShapeError
from services.provisioning.github_client import GitHubClient
from services.provisioning.models import TemplateKind
from services.provisioning.template_resolver import (
    TemplateResolver,
    is_binary_path,
    strip_local_extends,
)
from tests.fakes import BASE, EXTENDED, FakeGitHub, SOURCE_REPO


@pytest.fixture
def resolver(github, settings) -> TemplateResolver:
    return TemplateResolver(github, settings)


class TestStripLocalExtends:
    """Test removal of local layer references from nuxt.config.ts."""

    def test_keeps_package_entries(self):
        source = 'export default defineNuxtConfig({\n  extends: ["../vue-starter-template", "@shopware/cms-base-layer"],\n});\n'

        result = strip_local_extends(source)

        assert result == 'export default defineNuxtConfig({\n  extends: ["@shopware/cms-base-layer"],\n});\n'

    def test_removes_line_when_only_local_entries(self):
        source = "export default defineNuxtConfig({\n  extends: ['./base', '../other'],\n  ssr: true,\n});\n"

        result = strip_local_extends(source)

        assert result == "export default defineNuxtConfig({\n  ssr: true,\n});\n"

    def test_removes_single_string_local_extends(self):
        source = 'defineNuxtConfig({\n  extends: "../vue-starter-template",\n  ssr: true,\n})'

        assert strip_local_extends(source) == "defineNuxtConfig({\n  ssr: true,\n})"

    def test_package_only_extends_unchanged(self):
        source = 'defineNuxtConfig({ extends: ["@shopware/composables/nuxt-layer"] })'

        assert strip_local_extends(source) == source

    def test_no_extends_unchanged(self):
        source = "defineNuxtConfig({ ssr: false })"

        assert strip_local_extends(source) == source


def test_binary_detection():
    assert is_binary_path("public/favicon.ico")
    assert is_binary_path("fonts/Inter.WOFF2")
    assert not is_binary_path("public/logo.svg")
    assert not is_binary_path("app.vue")


class TestResolveBase:
    """Test resolving the base template."""

    async def test_fetches_all_files_relative_to_template(self, resolver):
        resolved = await resolver.resolve("main", TemplateKind.BASE)

        assert resolved.files.paths() == [
            "README.md",
            "app.vue",
            "components/TheHeader.vue",
            "nuxt.config.ts",
            "package.json",
            "pages/index.vue",
            "public/favicon.ico",
            "uno.config.ts",
        ]
        assert resolved.template == "vue-starter-template"
        assert resolved.ref == "main"
        assert resolved.fetch_failures == []

    async def test_binary_files_are_base64(self, resolver):
        resolved = await resolver.resolve("main", TemplateKind.BASE)

        favicon = resolved.files.get("public/favicon.ico")
        assert favicon.encoding == "base64"
        assert base64.b64decode(favicon.content) == b"\x00\x00\x01\x00\x01\x00\x10\x10"

    async def test_text_files_are_decoded(self, resolver):
        resolved = await resolver.resolve("main", TemplateKind.BASE)

        app_vue = resolved.files.get("app.vue")
        assert app_vue.encoding == "utf-8"
        assert app_vue.content == "<template><NuxtPage /></template>\n"

    async def test_ref_is_forwarded(self, resolver, fake_github):
        await resolver.resolve("v1.2.0", TemplateKind.BASE)

        contents_requests = [r for r in fake_github.requests if "/contents/" in r.url.path]
        assert contents_requests
        assert all(r.url.params["ref"] == "v1.2.0" for r in contents_requests)

    async def test_failed_file_is_skipped_and_recorded(self, resolver, fake_github):
        fake_github.fail("GET", "TheHeader.vue")

        resolved = await resolver.resolve("main", TemplateKind.BASE)

        assert "components/TheHeader.vue" not in resolved.files
        assert len(resolved.files) == 7
        assert [f.path for f in resolved.fetch_failures] == ["components/TheHeader.vue"]
        assert not resolved.files.is_complete

    async def test_listing_failure_raises(self, resolver, fake_github):
        fake_github.fail("GET", f"/contents/{BASE}")

        with pytest.raises(SourceFetchError) as exc_info:
            await resolver.resolve("main", TemplateKind.BASE)

        assert exc_info.value.status_code == 500
        assert exc_info.value.stage == "resolve"


class TestResolveExtended:
    """Test layering the extended template over the base template."""

    async def test_union_of_both_trees(self, resolver):
        resolved = await resolver.resolve("main", TemplateKind.EXTENDED)

        paths = set(resolved.files.paths())
        assert "components/TheHeader.vue" in paths
        assert "public/logo.svg" in paths
        assert resolved.template == "vue-starter-template-extended"

    async def test_extension_wins_on_collision(self, resolver):
        resolved = await resolver.resolve("main", TemplateKind.EXTENDED)

        assert resolved.files.get("app.vue").content == (
            "<template><NuxtLayout><NuxtPage /></NuxtLayout></template>\n"
        )
        assert "'brand-secondary'" in resolved.files.get("uno.config.ts").content

    async def test_local_extends_removed(self, resolver):
        resolved = await resolver.resolve("main", TemplateKind.EXTENDED)

        nuxt_config = resolved.files.get("nuxt.config.ts").content
        assert "../vue-starter-template" not in nuxt_config
        assert '"@shopware/cms-base-layer"' in nuxt_config

    async def test_failures_from_both_trees_are_collected(self, resolver, fake_github):
        fake_github.fail("GET", "pages/index.vue")
        fake_github.fail("GET", f"{EXTENDED}/public/logo.svg")

        resolved = await resolver.resolve("main", TemplateKind.EXTENDED)

        assert sorted(f.path for f in resolved.fetch_failures) == ["pages/index.vue", "public/logo.svg"]


async def test_directory_that_is_a_file_raises(settings):
    fake = FakeGitHub(source={BASE: "not a directory"})

    async with GitHubClient.from_settings(settings, transport=fake.transport()) as github:
        with pytest.raises(SourceShapeError):
            await TemplateResolver(github, settings).resolve("main", TemplateKind.BASE)

    assert fake.calls == [("GET", f"/repos/{SOURCE_REPO}/contents/{BASE}")]


async def test_file_that_is_a_directory_raises(settings):
    fake = FakeGitHub(source={f"{BASE}/app.vue": "<template />", f"{BASE}/nuxt.config.ts": "export default {}"})

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith(f"/contents/{BASE}/app.vue"):
            return httpx.Response(200, json=[{"name": "index.vue", "path": f"{BASE}/app.vue/index.vue", "type": "file"}])
        return fake.handler(request)

    async with GitHubClient.from_settings(settings, transport=httpx.MockTransport(handler)) as github:
        with pytest.raises(SourceShapeError) as exc_info:
            await TemplateResolver(github, settings).resolve("main", TemplateKind.BASE)

    assert exc_info.value.path == f"{BASE}/app.vue"
    assert exc_info.value.stage == "resolve"
