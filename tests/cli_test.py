"""Test the command-line entry point against preloaded registries."""

import json
import sys
import time
from pathlib import Path

import pytest

from ecr_reaper.cli import main
from ecr_reaper.config import ENV_EXPIRES_AFTER_PULL_DAYS, ENV_REGISTRY_ID
from ecr_reaper.exceptions import RegistryError, RegistryErrorKind
from ecr_reaper.storage.preloaded import PreloadedClient


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENV_REGISTRY_ID, raising=False)
    monkeypatch.delenv(ENV_EXPIRES_AFTER_PULL_DAYS, raising=False)


def _run(monkeypatch: pytest.MonkeyPatch, *args: str) -> None:
    monkeypatch.setattr(sys, "argv", ["ecr-reaper", *args])
    main()


def test_run_once(
    contents_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """The snapshot is years old, so everything in it is reaped."""
    before = contents_file.read_text()
    _run(monkeypatch, "--input-file", str(contents_file), "--debug")
    # Preloaded deletions only happen in memory.
    assert contents_file.read_text() == before


def test_dry_run_from_config(
    test_config: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _run(monkeypatch, "--config-file", str(test_config), "--dry-run")


def test_dump(
    contents_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    dump = tmp_path / "dump.json"
    _run(
        monkeypatch,
        "--input-file",
        str(contents_file),
        "--dump-file",
        str(dump),
    )
    data = json.loads(dump.read_text())
    assert data["metadata"]["format"] == "ecr-reaper/v1"
    assert sorted(data["data"].keys()) == ["repo1", "repo2", "repo3"]
    assert sorted(data["data"]["repo2"].keys()) == [
        "sha256:0003",
        "sha256:0004",
    ]


def test_negative_retention(
    contents_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        _run(
            monkeypatch,
            "--input-file",
            str(contents_file),
            "--expires-after-pull-days",
            "-1",
        )
    assert excinfo.value.code == 2


def test_failed_pass_exits_nonzero(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A dump with a digest that cannot be deleted fails the pass."""
    contents = {
        "metadata": {"format": "ecr-reaper/v1"},
        "data": {
            "bad": {
                "sha256:0001": {
                    "digest": "sha256:0001",
                    "pushed_at": "2020-01-01T00:00:00.000000+0000",
                }
            }
        },
    }
    input_file = tmp_path / "contents.json"
    input_file.write_text(json.dumps(contents))

    original = PreloadedClient.batch_delete_images

    def _fail(
        self: PreloadedClient, repo_name: str, digests: list[str]
    ) -> None:
        original(self, repo_name, [*digests, "sha256:missing"])

    monkeypatch.setattr(PreloadedClient, "batch_delete_images", _fail)
    with pytest.raises(SystemExit) as excinfo:
        _run(monkeypatch, "--input-file", str(input_file))
    assert excinfo.value.code == 1


def test_malformed_config_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("registryId: [unclosed\n")
    with pytest.raises(SystemExit) as excinfo:
        _run(monkeypatch, "--config-file", str(config_file))
    assert excinfo.value.code == 2


@pytest.mark.parametrize(
    "contents",
    [None, "{not json", json.dumps({"data": {}}), json.dumps([1, 2])],
)
def test_bad_input_file(
    contents: str | None, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Missing or malformed preloaded contents exit cleanly."""
    input_file = tmp_path / "contents.json"
    if contents is not None:
        input_file.write_text(contents)
    with pytest.raises(SystemExit) as excinfo:
        _run(monkeypatch, "--input-file", str(input_file))
    assert excinfo.value.code == 1


class _StopLoop(Exception):
    pass


def test_loop_continues_after_failed_pass(
    contents_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """In loop mode a failed pass is logged and the next pass runs."""
    listings: list[str] = []
    sleeps: list[float] = []

    def _fail_listing(self: PreloadedClient, repo_name: str) -> list:
        listings.append(repo_name)
        raise RegistryError(
            "Listing failed",
            RegistryErrorKind.LISTING_FAILURE,
            repository=repo_name,
        )

    def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
        if len(sleeps) == 2:
            raise _StopLoop

    monkeypatch.setattr(PreloadedClient, "list_images", _fail_listing)
    monkeypatch.setattr(time, "sleep", _sleep)
    with pytest.raises(_StopLoop):
        _run(
            monkeypatch,
            "--input-file",
            str(contents_file),
            "--loop-delay",
            "1",
        )
    assert sleeps == [1, 1]
    assert listings == ["repo1", "repo2", "repo3"] * 2
