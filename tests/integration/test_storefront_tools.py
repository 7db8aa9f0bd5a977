"""Integration tests for the storefront tools over HTTP, with GitHub and Vercel faked."""

import pytest

from app.config import settings as app_settings
from tests.fakes import BASE, BASE_NUXT_CONFIG, BASE_UNO_CONFIG, FakeGitHub

TOOLS = f"{app_settings.api_prefix}/tools"


def create_arguments(owner: str = "acme", **overrides) -> dict:
    arguments = {
        "storeId": "acme-1",
        "brand": {
            "name": "Acme",
            "colors": {"primary": "#ff0066"},
            "logoSvg": "<svg>acme</svg>",
        },
        "git": {"owner": owner, "repo": "acme-store"},
        "vercel": {"projectName": "acme-store"},
    }
    arguments.update(overrides)
    return arguments


@pytest.mark.asyncio
@pytest.mark.integration
class TestCreateStoreAndDeploy:
    """Test POST /tools/create_store_and_deploy."""

    async def test_creates_branded_store(self, client, auth_headers, fake_github, fake_vercel):
        """Test the full pipeline: resolve, brand, publish, provision."""
        response = await client.post(
            f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments()
        )

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["tool"] == "create_store_and_deploy"
        assert body["request_id"] == response.headers["X-Request-ID"]

        result = body["result"]
        assert result["storeId"] == "acme-1"
        assert result["template"] == "vue-starter-template-extended"
        assert result["repo"]["created"] is True
        assert result["repo"]["url"] == "https://github.com/acme/acme-store"
        assert result["commit"]["filesCommitted"] == 9
        assert result["commit"]["branch"] == "main"
        assert result["branding"] == {"modifiedPaths": ["public/logo.svg", "uno.config.ts"], "warnings": []}
        assert result["vercel"]["linkedRepo"] == "acme/acme-store"
        assert result["vercel"]["deployment"]["status"] == "QUEUED"
        assert result["fetchFailures"] == []
        assert result["warnings"] == []

        files = fake_github.files_at("acme/acme-store")
        assert 'primary: "#ff0066"' in files["uno.config.ts"]
        assert files["public/logo.svg"] == "<svg>acme</svg>"
        assert "../vue-starter-template" not in files["nuxt.config.ts"]
        assert fake_github.tip("acme/acme-store") == result["commit"]["sha"]

        deployment = fake_vercel.deployments[result["vercel"]["deployment"]["deploymentId"]]
        assert deployment["gitSource"] == {"type": "github", "repo": "acme/acme-store", "ref": "main"}

    async def test_private_repository_by_default(self, client, auth_headers, fake_github):
        await client.post(f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments())

        assert fake_github.repos["acme/acme-store"].private is True

    async def test_owner_not_allowlisted(self, client, auth_headers, fake_github, fake_vercel):
        """Test that a non-allowlisted owner is rejected before any upstream call."""
        response = await client.post(
            f"{TOOLS}/create_store_and_deploy",
            headers=auth_headers,
            json=create_arguments(owner="other-org"),
        )

        assert response.status_code == 403
        assert fake_github.calls == []
        assert fake_vercel.calls == []

    async def test_missing_github_token(self, client, settings, auth_headers, fake_github, monkeypatch):
        """Test that missing outbound credentials fail closed before side effects."""
        monkeypatch.setattr(settings, "github_token", None)

        response = await client.post(
            f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments()
        )

        assert response.status_code == 500
        assert "GITHUB_TOKEN" in response.json()["detail"]
        assert fake_github.calls == []

    async def test_missing_token_denial_is_audited(self, client, settings, auth_headers, monkeypatch, caplog):
        monkeypatch.setattr(settings, "vercel_token", None)

        with caplog.at_level("INFO"):
            response = await client.post(
                f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments()
            )

        assert response.status_code == 500
        denied = [r.getMessage() for r in caplog.records if "mcp.config.denied" in r.getMessage()]
        assert len(denied) == 1
        assert "VERCEL_TOKEN" in denied[0]
        assert response.headers["X-Request-ID"] in denied[0]

    async def test_publish_failure_is_a_tool_error(self, client, auth_headers, fake_github, fake_vercel):
        """Test that a publisher stage failure is reported with its stage name."""
        fake_github.fail("POST", "/git/trees")

        response = await client.post(
            f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments()
        )

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is False
        assert body["result"] is None
        assert body["error"]["type"] == "TreeCreateError"
        assert body["error"]["stage"] == "create_tree"
        assert fake_github.calls_matching("PATCH", "/git/refs") == []
        assert fake_vercel.calls == []

    async def test_ref_conflict_is_not_retried(self, client, auth_headers, fake_github):
        fake_github.add_repo("acme/acme-store")
        fake_github.concurrent_push.add("acme/acme-store")

        response = await client.post(
            f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments()
        )

        body = response.json()
        assert body["ok"] is False
        assert body["error"]["type"] == "RefConflictError"
        assert body["error"]["stage"] == "update_ref"
        assert len(fake_github.calls_matching("PATCH", "/git/refs")) == 1

    async def test_template_listing_failure(self, client, auth_headers, fake_github):
        fake_github.fail("GET", f"/contents/{BASE}")

        response = await client.post(
            f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments()
        )

        body = response.json()
        assert body["ok"] is False
        assert body["error"]["stage"] == "resolve"
        assert fake_github.write_calls == []

    async def test_deployment_trigger_failure_is_a_warning(self, client, auth_headers, fake_vercel):
        fake_vercel.fail("POST", "/v13/deployments")

        response = await client.post(
            f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments()
        )

        body = response.json()
        assert body["ok"] is True
        assert body["result"]["vercel"]["deployment"] is None
        assert body["result"]["warnings"][0].startswith("Deployment trigger failed:")

    async def test_skipped_template_files_are_reported(self, client, auth_headers, fake_github):
        fake_github.fail("GET", "TheHeader.vue")

        response = await client.post(
            f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments()
        )

        result = response.json()["result"]
        assert [f["path"] for f in result["fetchFailures"]] == ["components/TheHeader.vue"]
        assert result["commit"]["filesCommitted"] == 8
        assert "1 template file(s) could not be fetched and were skipped" in result["warnings"]

    async def test_audit_trail(self, client, auth_headers, caplog):
        with caplog.at_level("INFO"):
            await client.post(
                f"{TOOLS}/create_store_and_deploy", headers=auth_headers, json=create_arguments()
            )

        assert "mcp.tool.start" in caplog.text
        assert "mcp.tool.success" in caplog.text
        assert "ghp_testtoken" not in caplog.text


@pytest.mark.asyncio
@pytest.mark.integration
class TestCreateStoreFromMinimalTemplate:
    """Test publishing a two-file template."""

    @pytest.fixture
    def fake_github(self) -> FakeGitHub:
        return FakeGitHub(
            source={
                f"{BASE}/uno.config.ts": BASE_UNO_CONFIG,
                f"{BASE}/nuxt.config.ts": BASE_NUXT_CONFIG,
            }
        )

    async def test_commits_exactly_the_template_files(self, client, auth_headers, fake_github):
        response = await client.post(
            f"{TOOLS}/create_store_and_deploy",
            headers=auth_headers,
            json=create_arguments(
                template="vue-starter-template",
                brand={"name": "Acme", "colors": {"primary": "#ff0066"}},
            ),
        )

        result = response.json()["result"]
        assert result["commit"]["filesCommitted"] == 2
        assert result["branding"]["modifiedPaths"] == ["uno.config.ts"]
        assert set(fake_github.files_at("acme/acme-store")) == {"README.md", "uno.config.ts", "nuxt.config.ts"}


@pytest.mark.asyncio
@pytest.mark.integration
class TestPlanStorefront:
    """Test POST /tools/plan_storefront."""

    async def test_plan_has_no_side_effects(self, client, auth_headers, fake_github, fake_vercel):
        response = await client.post(
            f"{TOOLS}/plan_storefront",
            headers=auth_headers,
            json={
                "storeId": "acme-1",
                "git": {"owner": "acme", "repo": "acme-store"},
                "vercel": {"projectName": "acme-store"},
                "brand": {"name": "Acme", "colors": {"primary": "#ff0066", "accent": "#00ff00"}},
            },
        )

        assert response.status_code == 200
        result = response.json()["result"]
        assert fake_github.write_calls == []
        assert fake_vercel.calls == []

        assert [step["id"] for step in result["steps"]] == ["inspect", "prepare-branding", "execute", "verify"]
        assert result["unoTheme"]["colorTokens"] == ["primary", "brand-secondary", "surface"]
        assert result["steps"][1]["previewModifiedPaths"] == ["uno.config.ts"]
        assert result["steps"][2]["toolCall"]["arguments"]["git"]["owner"] == "acme"
        assert result["packagesSummary"]["packageCount"] == 3
        assert result["resolvedTemplate"]["fileCount"] == 9
        assert "Color tokens not defined by the theme: accent" in result["warnings"]

    async def test_plan_does_not_check_allowlist(self, client, auth_headers):
        response = await client.post(
            f"{TOOLS}/plan_storefront",
            headers=auth_headers,
            json={
                "storeId": "other-1",
                "git": {"owner": "other-org", "repo": "store"},
                "vercel": {"projectName": "store"},
            },
        )

        assert response.status_code == 200
        assert response.json()["ok"] is True

    async def test_empty_i18n_is_flagged(self, client, auth_headers):
        response = await client.post(
            f"{TOOLS}/plan_storefront",
            headers=auth_headers,
            json={
                "storeId": "acme-1",
                "git": {"owner": "acme", "repo": "acme-store"},
                "vercel": {"projectName": "acme-store"},
                "i18n": {"locales": ["en-GB"]},
            },
        )

        warnings = response.json()["result"]["warnings"]
        assert any("i18n provided" in warning for warning in warnings)


@pytest.mark.asyncio
@pytest.mark.integration
class TestInspectionTools:
    """Test the read-only inspection tools."""

    async def test_describe_uno_theme(self, client, auth_headers):
        response = await client.post(f"{TOOLS}/describe_uno_theme", headers=auth_headers, json={})

        assert response.json()["result"]["colorTokens"] == ["primary", "brand-secondary", "surface"]

    async def test_describe_template(self, client, auth_headers):
        response = await client.post(
            f"{TOOLS}/describe_template",
            headers=auth_headers,
            json={"template": "vue-starter-template-extended", "ref": "main"},
        )

        result = response.json()["result"]
        assert result["template"] == "vue-starter-template-extended"
        assert result["unoConfigPresent"] is True

    async def test_compare_templates(self, client, auth_headers):
        response = await client.post(f"{TOOLS}/compare_templates", headers=auth_headers, json={})

        assert response.json()["result"]["diff"]["dirs"]["onlyInA"] == ["components", "pages"]

    async def test_describe_packages(self, client, auth_headers):
        response = await client.post(f"{TOOLS}/describe_packages", headers=auth_headers, json={})

        assert response.json()["result"]["packageCount"] == 3

    async def test_source_failure_is_a_tool_error(self, client, auth_headers, fake_github):
        fake_github.fail("GET", "/contents/packages", 503)

        response = await client.post(f"{TOOLS}/describe_packages", headers=auth_headers, json={})

        body = response.json()
        assert response.status_code == 200
        assert body["ok"] is False
        assert body["error"]["type"] == "SourceFetchError"
        assert body["error"]["details"]["status_code"] == 503

    async def test_deployment_status(self, client, auth_headers, fake_vercel):
        fake_vercel.deployments["dpl_9"] = {"id": "dpl_9", "url": "acme.vercel.app", "readyState": "READY"}

        response = await client.post(
            f"{TOOLS}/get_deployment_status", headers=auth_headers, json={"deploymentId": "dpl_9"}
        )

        assert response.json()["result"] == {
            "deploymentId": "dpl_9",
            "status": "READY",
            "url": "https://acme.vercel.app",
            "error": None,
        }

    async def test_unknown_deployment(self, client, auth_headers):
        response = await client.post(
            f"{TOOLS}/get_deployment_status", headers=auth_headers, json={"deploymentId": "dpl_404"}
        )

        body = response.json()
        assert body["ok"] is False
        assert body["error"]["stage"] == "deployment_status"
