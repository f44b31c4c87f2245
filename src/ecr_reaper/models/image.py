"""Model for necessary information about container images."""

import datetime
import json
from dataclasses import asdict, dataclass, field
from typing import Self, cast

DATEFMT = "%Y-%m-%dT%H:%M:%S.%f%z"

type JSONImage = dict[str, str | list[str] | None]


def _format_date(date: datetime.datetime | None) -> str | None:
    if date is None:
        return None
    return date.astimezone(datetime.UTC).strftime(DATEFMT)


def _parse_date(inp: str | list[str] | None) -> datetime.datetime | None:
    if not inp or not isinstance(inp, str):
        return None
    return datetime.datetime.strptime(inp, DATEFMT).astimezone(datetime.UTC)


@dataclass
class Image:
    """Class representing the things about an OCI image we care about.

    Deletion is keyed by digest.  Tags are carried along only so that
    humans reading the logs know what went away.
    """

    digest: str
    pushed_at: datetime.datetime
    tags: list[str] = field(default_factory=list)
    last_pulled_at: datetime.datetime | None = None

    def __str__(self) -> str:
        """Humans care about tags, and digests not so much."""
        colon_pos = self.digest.find(":")
        dig = self.digest
        if colon_pos > -1:
            dig = self.digest[1 + colon_pos :]
        if len(dig) > 8:
            dig = dig[:8] + "..."
        tags = ",".join(self.tags) if self.tags else "<untagged>"
        return f"[{tags}] <{dig}>"

    @property
    def last_used(self) -> datetime.datetime:
        """Last pull time, or push time if the image was never pulled."""
        if self.last_pulled_at is None:
            return self.pushed_at
        return self.last_pulled_at

    def is_expired(self, cutoff: datetime.datetime) -> bool:
        return self.last_used < cutoff

    def to_dict(self) -> JSONImage:
        # Datetimes aren't JSON-serializable, so we make them strings.
        self_dict = asdict(self)
        self_dict["tags"] = list(self.tags)
        self_dict["pushed_at"] = _format_date(self.pushed_at)
        self_dict["last_pulled_at"] = _format_date(self.last_pulled_at)
        return self_dict

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, inp: JSONImage | str) -> Self:
        """Much painful assertion that each field is the right type."""
        if isinstance(inp, str):
            obj = json.loads(inp)
            inp = cast("JSONImage", obj)
        if not isinstance(inp["digest"], str):
            raise TypeError(f"'digest' field of {inp} must be a string")
        pushed_at = _parse_date(inp.get("pushed_at"))
        if pushed_at is None:
            raise ValueError(f"'pushed_at' field of {inp} is required")
        new_tags: list[str] = []
        t_s = inp.get("tags")
        if t_s and isinstance(t_s, list):
            new_tags = list(t_s)
        return cls(
            digest=inp["digest"],
            pushed_at=pushed_at,
            tags=new_tags,
            last_pulled_at=_parse_date(inp.get("last_pulled_at")),
        )

    @classmethod
    def from_ecr(cls, detail: dict) -> Self:
        """Build from an ``imageDetails`` entry of ECR ``DescribeImages``."""
        return cls(
            digest=detail["imageDigest"],
            pushed_at=detail["imagePushedAt"],
            tags=list(detail.get("imageTags", [])),
            last_pulled_at=detail.get("lastRecordedPullTime"),
        )
