"""Repository publisher: one file set, one commit, one ref write.

Blobs, the tree and the commit are unreachable objects until the final ref
write; a failure at any earlier stage leaves the branch exactly where it was.
"""

from app.config import Settings
from app.core.logging import get_context_logger
from app.core.metrics import commits_published_total, publish_stage_failures_total
from app.utils.exceptions import (
    BaseResolveError,
    BlobCreateError,
    CommitCreateError,
    EmptyFileSetError,
    PublishError,
    RefConflictError,
    RefUpdateError,
    RepoCreateError,
    TreeCreateError,
    UpstreamAPIError,
)
from services.provisioning.github_client import GitHubClient
from services.provisioning.models import EnsureRepoResult, FileSet, PublishResult, RepoTarget

FILE_MODE = "100644"


class RepositoryPublisher:
    """Publishes file sets as single commits through the Git Data API."""

    def __init__(self, github: GitHubClient, settings: Settings):
        self.github = github
        self.default_description = settings.default_repo_description
        self.logger = get_context_logger(__name__)

    def _fail(self, error: PublishError) -> PublishError:
        publish_stage_failures_total.labels(stage=error.stage).inc()
        self.logger.error(
            "Publish stage failed",
            stage=error.stage,
            error=error.message,
            **error.details,
        )
        return error

    async def ensure_repository(self, target: RepoTarget) -> EnsureRepoResult:
        """
        Make sure the destination repository exists.

        A new repository is created with an initial commit so the Git Data
        API can be used right away. Repositories are created under the
        authenticated user when ``target.owner`` is that user's login and
        under the organization otherwise.

        Raises:
            RepoCreateError: If the existence check or creation fails
        """
        repo_url = f"https://github.com/{target.owner}/{target.repo}"
        clone_url = f"{repo_url}.git"

        try:
            if await self.github.repo_exists(target.owner, target.repo):
                self.logger.info("Repository exists", repo=target.full_name)
                return EnsureRepoResult(repo_url=repo_url, clone_url=clone_url, created=False)

            user = await self.github.get_authenticated_user()
            created = await self.github.create_repo(
                target.owner,
                target.repo,
                private=target.private,
                description=target.description or self.default_description,
                for_authenticated_user=user.get("login") == target.owner,
            )
        except UpstreamAPIError as e:
            raise self._fail(
                RepoCreateError(
                    f"Failed to create repository {target.full_name}: {e.message}",
                    details={"repo": target.full_name, "status_code": e.status_code},
                )
            ) from e

        self.logger.info("Repository created", repo=target.full_name, private=target.private)
        return EnsureRepoResult(
            repo_url=created.get("html_url", repo_url),
            clone_url=created.get("clone_url", clone_url),
            created=True,
        )

    async def publish(
        self,
        target: RepoTarget,
        files: FileSet,
        commit_message: str,
        branch: str = "main",
    ) -> PublishResult:
        """
        Publish ``files`` to ``branch`` of ``target`` as exactly one commit.

        Args:
            target: Destination repository
            files: Complete file set to commit
            commit_message: Commit message
            branch: Branch to advance or create

        Returns:
            PublishResult: The new commit, its tree and the base it was built on

        Raises:
            EmptyFileSetError: If ``files`` is empty (no remote call is made)
            PublishError: Stage-specific subclass; the branch ref is unchanged
        """
        if not len(files):
            raise self._fail(EmptyFileSetError("Refusing to publish an empty file set"))

        owner, repo = target.owner, target.repo
        repo_result = await self.ensure_repository(target)

        try:
            base_sha = await self.github.get_branch_tip(owner, repo, branch)
            base_tree = None
            if base_sha:
                base_commit = await self.github.get_commit(owner, repo, base_sha)
                base_tree = base_commit["tree"]["sha"]
        except UpstreamAPIError as e:
            raise self._fail(
                BaseResolveError(
                    f"Failed to read branch {branch}: {e.message}",
                    details={"branch": branch, "status_code": e.status_code},
                )
            ) from e

        entries = []
        for file in files:
            try:
                blob_sha = await self.github.create_blob(owner, repo, file.content, file.encoding)
            except UpstreamAPIError as e:
                raise self._fail(
                    BlobCreateError(
                        f"Failed to create blob for {file.path}: {e.message}",
                        details={"path": file.path, "status_code": e.status_code},
                    )
                ) from e
            entries.append({"path": file.path, "mode": FILE_MODE, "type": "blob", "sha": blob_sha})

        self.logger.debug("Blobs created", repo=target.full_name, count=len(entries))

        try:
            tree_sha = await self.github.create_tree(owner, repo, entries, base_tree)
        except UpstreamAPIError as e:
            raise self._fail(
                TreeCreateError(
                    f"Failed to create tree: {e.message}",
                    details={"status_code": e.status_code},
                )
            ) from e

        try:
            commit = await self.github.create_commit(
                owner, repo, commit_message, tree_sha, [base_sha] if base_sha else []
            )
        except UpstreamAPIError as e:
            raise self._fail(
                CommitCreateError(
                    f"Failed to create commit: {e.message}",
                    details={"status_code": e.status_code},
                )
            ) from e
        commit_sha = commit["sha"]

        try:
            if base_sha:
                await self.github.update_ref(owner, repo, branch, commit_sha)
            else:
                await self.github.create_ref(owner, repo, branch, commit_sha)
        except UpstreamAPIError as e:
            details = {"branch": branch, "commit_sha": commit_sha, "status_code": e.status_code}
            if e.status_code == 422:
                raise self._fail(
                    RefConflictError(
                        f"Branch {branch} moved while publishing; ref not updated",
                        details=details,
                    )
                ) from e
            raise self._fail(
                RefUpdateError(f"Failed to update branch {branch}: {e.message}", details=details)
            ) from e

        commits_published_total.inc()
        commit_url = commit.get("html_url") or f"https://github.com/{owner}/{repo}/commit/{commit_sha}"
        self.logger.info(
            "Commit published",
            repo=target.full_name,
            branch=branch,
            commit_sha=commit_sha,
            files=len(entries),
            base_commit_sha=base_sha,
        )
        return PublishResult(
            commit_sha=commit_sha,
            commit_url=commit_url,
            files_committed=len(entries),
            tree_sha=tree_sha,
            base_commit_sha=base_sha,
            branch=branch,
            repo=repo_result,
        )
