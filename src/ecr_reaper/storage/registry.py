"""Abstract superclass for container registry clients."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

from ..models.image import Image, JSONImage
from ..models.repository import Repository

DUMP_FORMAT = "ecr-reaper/v1"


class ContainerRegistryClient(ABC):
    """Collection of methods we expect any registry client to provide.

    Every operation is scoped to the registry given by ``registry_id``; if
    that is `None`, the registry backing the current credentials is used.

    Note that these are synchronous.  That's on purpose.  The reaper walks
    the repositories one at a time and every decision depends on the
    previous call having completed, so there is nothing to overlap.

    Failures must be raised as `~ecr_reaper.exceptions.RegistryError` so
    that callers can act on the error kind.  Nothing else should leak out
    of a client.
    """

    def __init__(self, registry_id: str | None = None) -> None:
        self.registry_id = registry_id
        self._logger = structlog.get_logger(__name__)

    @abstractmethod
    def resolve_identity(self) -> str:
        """Return a description of the identity the client acts as."""
        ...

    @abstractmethod
    def list_repositories(self) -> list[Repository]:
        """Return every repository in the registry."""
        ...

    @abstractmethod
    def list_images(self, repo_name: str) -> list[Image]:
        """Return every image in a repository."""
        ...

    @abstractmethod
    def batch_delete_images(self, repo_name: str, digests: list[str]) -> None:
        """Delete many images from one repository in a single request."""
        ...

    @abstractmethod
    def delete_repository(self, repo_name: str) -> None: ...

    @abstractmethod
    def delete_lifecycle_policy(self, repo_name: str) -> None: ...

    def _dump_metadata(self) -> dict[str, Any]:
        """Extra metadata for a dump, beyond format and registry ID."""
        return {}

    def debug_dump_images(self, outputfile: Path) -> None:
        """Write JSON of every repository and its images."""
        data: dict[str, dict[str, JSONImage]] = {}
        for repo in self.list_repositories():
            data[repo.name] = {
                img.digest: img.to_dict()
                for img in self.list_images(repo.name)
            }
        metadata: dict[str, Any] = {
            "format": DUMP_FORMAT,
            "registry_id": self.registry_id,
        }
        metadata.update(self._dump_metadata())
        dd = {"metadata": metadata, "data": data}
        outputfile.write_text(json.dumps(dd, indent=2))
        count = sum(len(x) for x in data.values())
        self._logger.info(
            f"Dumped {len(data)} repositories, {count} images",
            file=str(outputfile),
        )
