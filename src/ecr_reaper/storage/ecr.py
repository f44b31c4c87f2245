"""Storage client for AWS Elastic Container Registry."""

from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import RegistryError, RegistryErrorKind
from ..models.image import Image
from ..models.repository import Repository
from .registry import ContainerRegistryClient

NOT_FOUND_CODES = {
    "ImageNotFoundException",
    "LifecyclePolicyNotFoundException",
    "RepositoryNotFoundException",
}


def _classify(
    exc: BotoCoreError | ClientError, default: RegistryErrorKind
) -> RegistryErrorKind:
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        if code in NOT_FOUND_CODES:
            return RegistryErrorKind.NOT_FOUND
    return default


class EcrClient(ContainerRegistryClient):
    """Client for AWS Elastic Container Registry.

    Credentials come from the usual boto3 chain (environment, shared
    config, instance or pod role).  The ECR and STS clients may be passed
    in, which is how the test suite stubs them.
    """

    def __init__(
        self,
        registry_id: str | None = None,
        *,
        region: str | None = None,
        ecr_client: Any = None,
        sts_client: Any = None,
    ) -> None:
        super().__init__(registry_id)
        if ecr_client is None or sts_client is None:
            session = boto3.Session(region_name=region)
            if ecr_client is None:
                ecr_client = session.client("ecr")
            if sts_client is None:
                sts_client = session.client("sts")
        self._ecr = ecr_client
        self._sts = sts_client

    def _scope(self, **kwargs: Any) -> dict[str, Any]:
        if self.registry_id:
            kwargs["registryId"] = self.registry_id
        return kwargs

    def resolve_identity(self) -> str:
        try:
            identity = self._sts.get_caller_identity()
        except (BotoCoreError, ClientError) as exc:
            raise RegistryError(
                f"Failed to get caller identity: {exc}",
                RegistryErrorKind.IDENTITY_FAILURE,
            ) from exc
        return identity["Arn"]

    def list_repositories(self) -> list[Repository]:
        paginator = self._ecr.get_paginator("describe_repositories")
        repos: list[Repository] = []
        try:
            for page in paginator.paginate(**self._scope()):
                repos.extend(
                    Repository(
                        name=r["repositoryName"],
                        registry_id=r.get("registryId"),
                    )
                    for r in page["repositories"]
                )
        except (BotoCoreError, ClientError) as exc:
            raise RegistryError(
                f"Failed to list repositories: {exc}",
                _classify(exc, RegistryErrorKind.LISTING_FAILURE),
            ) from exc
        self._logger.debug(f"Found {len(repos)} repositories")
        return repos

    def list_images(self, repo_name: str) -> list[Image]:
        paginator = self._ecr.get_paginator("describe_images")
        images: list[Image] = []
        try:
            for page in paginator.paginate(
                **self._scope(repositoryName=repo_name)
            ):
                images.extend(Image.from_ecr(x) for x in page["imageDetails"])
        except (BotoCoreError, ClientError) as exc:
            raise RegistryError(
                f"Failed to list images: {exc}",
                _classify(exc, RegistryErrorKind.LISTING_FAILURE),
                repository=repo_name,
            ) from exc
        self._logger.debug(
            f"Found {len(images)} images", repository=repo_name
        )
        return images

    def batch_delete_images(self, repo_name: str, digests: list[str]) -> None:
        try:
            resp = self._ecr.batch_delete_image(
                **self._scope(
                    repositoryName=repo_name,
                    imageIds=[{"imageDigest": d} for d in digests],
                )
            )
        except (BotoCoreError, ClientError) as exc:
            raise RegistryError(
                f"Failed to delete images: {exc}",
                _classify(exc, RegistryErrorKind.DELETE_FAILURE),
                repository=repo_name,
            ) from exc
        failures = resp.get("failures", [])
        if failures:
            reasons = [
                f"{f.get('imageId', {}).get('imageDigest')}:"
                f" {f.get('failureReason')}"
                for f in failures
            ]
            raise RegistryError(
                f"Failed to delete {len(failures)} of {len(digests)} images:"
                f" {reasons}",
                RegistryErrorKind.DELETE_FAILURE,
                repository=repo_name,
                failures=failures,
            )

    def delete_repository(self, repo_name: str) -> None:
        try:
            self._ecr.delete_repository(
                **self._scope(repositoryName=repo_name)
            )
        except (BotoCoreError, ClientError) as exc:
            raise RegistryError(
                f"Failed to delete repository: {exc}",
                _classify(exc, RegistryErrorKind.DELETE_FAILURE),
                repository=repo_name,
            ) from exc

    def delete_lifecycle_policy(self, repo_name: str) -> None:
        try:
            self._ecr.delete_lifecycle_policy(
                **self._scope(repositoryName=repo_name)
            )
        except (BotoCoreError, ClientError) as exc:
            raise RegistryError(
                f"Failed to delete lifecycle policy: {exc}",
                _classify(exc, RegistryErrorKind.DELETE_FAILURE),
                repository=repo_name,
            ) from exc
