import os
import json
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

log = logging.getLogger("repo-automation")


class Outcome(Enum):
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"
    SYNCED = "synced"
    UNCHANGED = "unchanged"
    ALREADY_PUSHED = "already-pushed"


@dataclass(frozen=True)
class RepositoryRef:
    owner: str
    name: str

    @classmethod
    def parse(cls, full_name: str) -> "RepositoryRef":
        """
        Convert "JonHolmanOrg/repo1" -> owner: JonHolmanOrg, name: repo1
        """
        owner, sep, name = full_name.strip().partition("/")
        if not sep or not owner or not name:
            raise ValueError(f"Could not parse owner/repo from: {full_name!r}")
        return cls(owner, name)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self):
        return self.full_name


@dataclass(frozen=True)
class EnvironmentSpec:
    environment_name: str
    wait_timer: Optional[int] = None
    prevent_self_review: Optional[bool] = None
    reviewers: Optional[List[Dict[str, Any]]] = None
    deployment_branch_policy: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnvironmentSpec":
        if not data.get("environment_name"):
            raise ValueError(f"Environment entry without environment_name: {data}")
        return cls(
            environment_name=data["environment_name"],
            wait_timer=data.get("wait_timer"),
            prevent_self_review=data.get("prevent_self_review"),
            reviewers=data.get("reviewers"),
            deployment_branch_policy=data.get("deployment_branch_policy"),
        )


@dataclass(frozen=True)
class RepositorySettings:
    branch_protection: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    environments: List[EnvironmentSpec] = field(default_factory=list)


@dataclass
class ItemResult:
    item: str
    outcome: Outcome
    detail: str = ""

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED


@dataclass
class RunSummary:
    results: List[ItemResult] = field(default_factory=list)

    def add(self, result: ItemResult):
        self.results.append(result)

    def extend(self, results: List[ItemResult]):
        self.results.extend(results)

    @property
    def failed(self) -> List[ItemResult]:
        return [r for r in self.results if r.failed]

    @property
    def ok(self) -> bool:
        return not self.failed

    def counts(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for r in self.results:
            out[r.outcome.value] = out.get(r.outcome.value, 0) + 1
        return out

    def log_summary(self, title: str):
        tally = ", ".join(f"{k}={v}" for k, v in sorted(self.counts().items())) or "nothing to do"
        log.info("%s: %s", title, tally)
        for r in self.failed:
            log.error("  ✗ %s: %s", r.item, r.detail)


def setup_logging(verbose: bool = False):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format="%(asctime)s [%(levelname)s] %(message)s",
                        datefmt="%H:%M:%S")


def require_token(env_var: str = "GITHUB_TOKEN") -> str:
    load_dotenv()
    token = os.getenv(env_var)
    if not token:
        raise SystemExit(f"❌ ERROR: {env_var} is not set.")
    return token


def load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_settings(path: str) -> RepositorySettings:
    data = load_json(path) or {}
    log.info("Loaded settings from %s", path)
    return RepositorySettings(
        branch_protection=dict(data.get("branchProtection") or {}),
        environments=[EnvironmentSpec.from_dict(e) for e in (data.get("environments") or [])],
    )


def load_repos(path: str) -> List[RepositoryRef]:
    data = load_json(path) or {}
    return [RepositoryRef.parse(r) for r in data.get("repos", [])]
