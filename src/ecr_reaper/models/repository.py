"""Models for repositories and the results of a cleanup pass."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Repository:
    """An ECR repository, as far as the reaper is concerned."""

    name: str
    registry_id: str | None = None

    def __str__(self) -> str:
        if self.registry_id:
            return f"{self.registry_id}/{self.name}"
        return self.name


@dataclass
class PassResult:
    """What happened during one cleanup pass.

    In dry-run mode the counters report what would have been deleted.
    """

    errors: list[Exception] = field(default_factory=list)
    images_deleted: int = 0
    repositories_deleted: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors
