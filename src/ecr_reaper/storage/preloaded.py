"""Registry client backed by a JSON dump of registry contents."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

from ..exceptions import RegistryError, RegistryErrorKind
from ..models.image import Image, JSONImage
from ..models.repository import Repository
from .registry import DUMP_FORMAT, ContainerRegistryClient


@dataclass
class DeletionRecord:
    """Calls that changed the registry, in the order they were made."""

    images: list[tuple[str, list[str]]] = field(default_factory=list)
    repositories: list[str] = field(default_factory=list)
    lifecycle_policies: list[str] = field(default_factory=list)


class PreloadedClient(ContainerRegistryClient):
    """In-memory registry, usually loaded from a file written by
    ``debug_dump_images``.

    Useful for planning offline against a snapshot of a real registry,
    and for the test suite.  Deletions change only the in-memory state,
    and are recorded in ``deleted``.
    """

    def __init__(
        self,
        registry_id: str | None = None,
        *,
        input_file: Path | None = None,
    ) -> None:
        super().__init__(registry_id)
        self._source = input_file.name if input_file else "memory"
        self._repos: dict[str, dict[str, Image]] = {}
        self._policies: set[str] = set()
        self.deleted = DeletionRecord()
        if input_file:
            self.debug_load_images(input_file)

    def debug_load_images(self, inputfile: Path) -> None:
        """Read repositories and images from JSON.

        Raises
        ------
        OSError
            If the file cannot be read.
        ValueError
            If the file is not a registry dump.
        """
        inp = json.loads(inputfile.read_text())
        try:
            fmt = inp["metadata"].get("format")
            if fmt != DUMP_FORMAT:
                raise ValueError(
                    f"Dump is in format {fmt}, not {DUMP_FORMAT}"
                )
            repos: dict[str, dict[str, Image]] = {}
            count = 0
            for repo_name, images in inp["data"].items():
                repos[repo_name] = {}
                for digest, obj in images.items():
                    img = Image.from_json(cast("JSONImage", obj))
                    repos[repo_name][digest] = img
                    count += 1
            policies = set(inp["metadata"].get("lifecycle_policies", []))
        except (AttributeError, KeyError, TypeError) as exc:
            raise ValueError(f"{inputfile} is not a registry dump") from exc
        self._repos = repos
        self._policies = policies
        self._logger.debug(
            f"Ingested {len(self._repos)} repositories, {count} images"
        )

    def _dump_metadata(self) -> dict[str, Any]:
        return {"lifecycle_policies": sorted(self._policies)}

    def add_repository(
        self,
        name: str,
        images: list[Image] | None = None,
        *,
        lifecycle_policy: bool = False,
    ) -> None:
        self._repos[name] = {x.digest: x for x in images or []}
        if lifecycle_policy:
            self._policies.add(name)

    def _get_repo(self, repo_name: str) -> dict[str, Image]:
        if repo_name not in self._repos:
            raise RegistryError(
                "Repository not found",
                RegistryErrorKind.NOT_FOUND,
                repository=repo_name,
            )
        return self._repos[repo_name]

    def resolve_identity(self) -> str:
        return f"preloaded:{self._source}"

    def list_repositories(self) -> list[Repository]:
        return [
            Repository(name=x, registry_id=self.registry_id)
            for x in self._repos
        ]

    def list_images(self, repo_name: str) -> list[Image]:
        return list(self._get_repo(repo_name).values())

    def batch_delete_images(self, repo_name: str, digests: list[str]) -> None:
        images = self._get_repo(repo_name)
        self.deleted.images.append((repo_name, list(digests)))
        missing = [x for x in digests if x not in images]
        for dig in digests:
            images.pop(dig, None)
        if missing:
            raise RegistryError(
                f"Failed to delete {len(missing)} of {len(digests)} images:"
                f" {missing}",
                RegistryErrorKind.DELETE_FAILURE,
                repository=repo_name,
                failures=[
                    {
                        "imageId": {"imageDigest": x},
                        "failureCode": "ImageNotFound",
                        "failureReason": "Requested image not found",
                    }
                    for x in missing
                ],
            )

    def delete_repository(self, repo_name: str) -> None:
        self._get_repo(repo_name)
        self.deleted.repositories.append(repo_name)
        del self._repos[repo_name]

    def delete_lifecycle_policy(self, repo_name: str) -> None:
        self._get_repo(repo_name)
        self.deleted.lifecycle_policies.append(repo_name)
        if repo_name not in self._policies:
            raise RegistryError(
                "Lifecycle policy not found",
                RegistryErrorKind.NOT_FOUND,
                repository=repo_name,
            )
        self._policies.remove(repo_name)
