"""Test fixtures for ECR image reaper."""

import datetime
from collections.abc import Iterator
from pathlib import Path
from tempfile import TemporaryDirectory

import boto3
import pytest
import yaml
from botocore.stub import Stubber

from ecr_reaper.config import Config
from ecr_reaper.exceptions import RegistryError, RegistryErrorKind
from ecr_reaper.storage.ecr import EcrClient
from ecr_reaper.storage.preloaded import PreloadedClient

REGISTRY_ID = "123456789012"


class FailingClient(PreloadedClient):
    """Preloaded client that fails chosen operations on chosen
    repositories.

    ``failures`` maps a method name to the repositories it should fail for,
    and the kind of error to raise.  The key ``list_repositories`` fails
    the listing regardless of repository.
    """

    def __init__(
        self,
        input_file: Path,
        failures: dict[str, tuple[set[str], RegistryErrorKind]],
    ) -> None:
        super().__init__(REGISTRY_ID, input_file=input_file)
        self._failures = failures

    def _maybe_fail(self, method: str, repo_name: str | None = None) -> None:
        if method not in self._failures:
            return
        repos, kind = self._failures[method]
        if repo_name is None or repo_name in repos:
            raise RegistryError(
                f"Injected failure in {method}", kind, repository=repo_name
            )

    def list_repositories(self) -> list:
        self._maybe_fail("list_repositories")
        return super().list_repositories()

    def list_images(self, repo_name: str) -> list:
        self._maybe_fail("list_images", repo_name)
        return super().list_images(repo_name)

    def batch_delete_images(self, repo_name: str, digests: list[str]) -> None:
        self._maybe_fail("batch_delete_images", repo_name)
        super().batch_delete_images(repo_name, digests)

    def delete_lifecycle_policy(self, repo_name: str) -> None:
        self._maybe_fail("delete_lifecycle_policy", repo_name)
        super().delete_lifecycle_policy(repo_name)


@pytest.fixture
def support_dir() -> Path:
    return Path(__file__).parent / "support"


@pytest.fixture
def contents_file(support_dir: Path) -> Path:
    """Registry with two expired images in repo1, one expired and one
    retained in repo2, and nothing in repo3.
    """
    return support_dir / "registry.contents.json"


@pytest.fixture
def now() -> datetime.datetime:
    """Seven days after the cutoff the default config yields."""
    return datetime.datetime(2023, 1, 11, tzinfo=datetime.UTC)


@pytest.fixture
def cutoff() -> datetime.datetime:
    return datetime.datetime(2023, 1, 4, tzinfo=datetime.UTC)


@pytest.fixture
def cfg() -> Config:
    return Config(registry_id=REGISTRY_ID, expires_after_pull_days=7)


@pytest.fixture
def dry_run_cfg() -> Config:
    return Config(
        registry_id=REGISTRY_ID, expires_after_pull_days=7, dry_run=True
    )


@pytest.fixture
def preloaded_client(contents_file: Path) -> PreloadedClient:
    return PreloadedClient(REGISTRY_ID, input_file=contents_file)


@pytest.fixture
def ecr_stub() -> Iterator[tuple[EcrClient, Stubber, Stubber]]:
    """ECR client whose underlying ECR and STS clients are stubbed."""
    kwargs = {
        "region_name": "eu-west-2",
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
    }
    ecr = boto3.client("ecr", **kwargs)
    sts = boto3.client("sts", **kwargs)
    client = EcrClient(REGISTRY_ID, ecr_client=ecr, sts_client=sts)
    with Stubber(ecr) as ecr_stubber, Stubber(sts) as sts_stubber:
        yield client, ecr_stubber, sts_stubber
        ecr_stubber.assert_no_pending_responses()
        sts_stubber.assert_no_pending_responses()


@pytest.fixture
def test_config(contents_file: Path, support_dir: Path) -> Iterator[Path]:
    """YAML configuration file pointing at the preloaded contents."""
    with TemporaryDirectory() as td:
        new_config = Path(td) / "config.yaml"
        config = yaml.safe_load((support_dir / "config.yaml").read_text())
        config["inputFile"] = str(contents_file)
        new_config.write_text(yaml.dump(config))

        yield new_config
