"""Configuration for the ECR image reaper."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, Self

import yaml
from pydantic import BeforeValidator, ConfigDict, Field
from safir.pydantic import CamelCaseModel

DEFAULT_EXPIRES_AFTER_PULL_DAYS = 7

ENV_REGISTRY_ID = "AWS_REGISTRY_ID"
ENV_EXPIRES_AFTER_PULL_DAYS = "AWS_ECR_EXPIRES_AFTER_PULL_DAYS"


def _empty_str_is_none(inp: Any) -> Any:
    if isinstance(inp, str) and inp == "":
        return None
    return inp


class Config(CamelCaseModel):
    """Configuration for one reaper.

    The model is frozen: a pass never sees its configuration change
    underneath it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    registry_id: Annotated[
        str | None,
        BeforeValidator(_empty_str_is_none),
        Field(
            title="Registry ID",
            description=(
                "AWS registry ID to reap.  If unset, the default registry of"
                " the account owning the credentials is used."
            ),
            examples=["123456789012"],
        ),
    ] = None

    expires_after_pull_days: Annotated[
        int,
        Field(
            title="Expires after pull days",
            description=(
                "Delete images that have not been pulled (or pushed, if"
                " never pulled) in this many days.  Zero deletes every"
                " image."
            ),
            ge=0,
            examples=[7],
        ),
    ] = DEFAULT_EXPIRES_AFTER_PULL_DAYS

    region: Annotated[
        str | None,
        BeforeValidator(_empty_str_is_none),
        Field(
            title="Region",
            description=(
                "AWS region of the registry.  If unset, the SDK default"
                " region resolution applies."
            ),
            examples=["eu-west-2"],
        ),
    ] = None

    dry_run: Annotated[
        bool,
        Field(
            title="Dry run",
            description="Do not actually delete any images or repositories.",
        ),
    ] = False

    debug: Annotated[
        bool,
        Field(
            title="Debug",
            description="Much more verbose logging.",
        ),
    ] = False

    loop_delay: Annotated[
        int,
        Field(
            title="Loop delay",
            description=(
                "Run in a loop, sleeping this many seconds between passes."
                "  Zero means run once."
            ),
            ge=0,
        ),
    ] = 0

    input_file: Annotated[
        Path | None,
        Field(
            title="Input file",
            description=(
                "If supplied, use registry contents from this file, rather"
                " than scanned from the actual registry."
            ),
        ),
    ] = None

    @classmethod
    def from_file(cls, path: Path) -> Self:
        return cls.model_validate(yaml.safe_load(path.read_text()) or {})

    @classmethod
    def load(
        cls, path: Path | None = None, overrides: dict[str, Any] | None = None
    ) -> Self:
        """Build configuration from the environment, a file, and overrides.

        Later sources win: environment variables are overridden by the
        file, which is overridden by explicit ``overrides`` (usually from
        the command line).  Overrides whose value is `None` are ignored.

        Raises
        ------
        pydantic.ValidationError
            If the merged configuration is invalid.
        """
        data: dict[str, Any] = {}
        registry_id = os.getenv(ENV_REGISTRY_ID)
        if registry_id:
            data["registry_id"] = registry_id
        expires = os.getenv(ENV_EXPIRES_AFTER_PULL_DAYS)
        if expires:
            data["expires_after_pull_days"] = expires
        if path is not None:
            from_file = cls.from_file(path)
            data.update(
                from_file.model_dump(by_alias=False, exclude_unset=True)
            )
        if overrides:
            data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(data)
