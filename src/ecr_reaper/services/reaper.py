"""Provides reaping services for an ECR registry."""

import datetime

import structlog
from safir.datetime import current_datetime, format_datetime_for_logging

from ..config import Config
from ..exceptions import RegistryError, RegistryErrorKind
from ..models.repository import PassResult
from ..storage.registry import ContainerRegistryClient


class Reaper:
    """Deletes images nobody has used lately, and repositories left empty.

    An image's last use is its last recorded pull, or its push if it has
    never been pulled.  Images last used before the cutoff are deleted.  A
    repository holding no image used since the cutoff is deleted too,
    together with its lifecycle policy.

    Repositories are independent: a failure in one is recorded and the
    pass moves on to the next.  Within a repository the first failure
    stops processing, so a repository is never deleted after its image
    deletion failed.

    Parameters
    ----------
    cfg
        Reaper configuration.
    storage
        Client for the registry to reap.
    """

    def __init__(self, cfg: Config, storage: ContainerRegistryClient) -> None:
        self._dry_run = cfg.dry_run
        self._expires_after = datetime.timedelta(
            days=cfg.expires_after_pull_days
        )
        self._storage = storage
        self._result = PassResult()
        self._logger = structlog.get_logger(__name__).bind(
            registry_id=cfg.registry_id, dry_run=self._dry_run
        )

    def run_pass(self, now: datetime.datetime | None = None) -> PassResult:
        """Run one cleanup pass, returning what happened."""
        if now is None:
            now = current_datetime()
        cutoff = (now - self._expires_after).astimezone(datetime.UTC)
        self._logger.info(
            "Deleting images older than cutoff",
            cutoff=format_datetime_for_logging(cutoff),
        )
        self._result = PassResult()
        self._result.errors = self.scan_and_delete_repositories(cutoff)
        self._logger.info(
            "Pass complete",
            images_deleted=self._result.images_deleted,
            repositories_deleted=self._result.repositories_deleted,
            errors=len(self._result.errors),
        )
        return self._result

    def run_once(
        self, now: datetime.datetime | None = None
    ) -> list[Exception]:
        """Run one cleanup pass, returning the errors encountered."""
        return self.run_pass(now).errors

    def scan_and_delete_repositories(
        self, cutoff: datetime.datetime
    ) -> list[Exception]:
        errs: list[Exception] = []
        try:
            repos = self._storage.list_repositories()
        except RegistryError as exc:
            self._logger.exception("Could not list repositories")
            errs.append(exc)
            return errs

        for repo in repos:
            try:
                self.scan_and_delete_images(repo.name, cutoff)
            except RegistryError as exc:
                self._logger.exception(
                    "Could not reap repository", repository=repo.name
                )
                errs.append(exc)
        return errs

    def scan_and_delete_images(
        self, repo_name: str, cutoff: datetime.datetime
    ) -> None:
        logger = self._logger.bind(repository=repo_name)
        empty = True
        images = self._storage.list_images(repo_name)

        tags_to_delete: list[str] = []
        digests_to_delete: list[str] = []
        for img in images:
            if img.last_pulled_at is None:
                logger.warning(
                    "Image has never been pulled, using last push",
                    image=str(img),
                )
            if img.is_expired(cutoff):
                tags_to_delete.extend(img.tags)
                digests_to_delete.append(img.digest)
            else:
                empty = False

        if digests_to_delete:
            logger.info("Deleting images", tags=tags_to_delete)
            self.delete_images(repo_name, digests_to_delete)

        if empty:
            self.delete_repository(repo_name)

    def delete_images(self, repo_name: str, digests: list[str]) -> None:
        if self._dry_run:
            self._logger.info(
                "Would delete images", repository=repo_name, digests=digests
            )
        else:
            self._storage.batch_delete_images(repo_name, digests)
            self._logger.debug(
                "Deleted images", repository=repo_name, digests=digests
            )
        self._result.images_deleted += len(digests)

    def _delete_lifecycle_policy(self, repo_name: str) -> None:
        try:
            self._storage.delete_lifecycle_policy(repo_name)
        except RegistryError as exc:
            # Ignore if it didn't exist
            if exc.kind == RegistryErrorKind.NOT_FOUND:
                self._logger.info(
                    "Lifecycle policy not found", repository=repo_name
                )
                return
            raise
        self._logger.info("Lifecycle policy deleted", repository=repo_name)

    def delete_repository(self, repo_name: str) -> None:
        if self._dry_run:
            self._logger.info("Would delete repository", repository=repo_name)
        else:
            self._logger.info("Deleting repository", repository=repo_name)
            self._delete_lifecycle_policy(repo_name)
            self._storage.delete_repository(repo_name)
        self._result.repositories_deleted += 1
