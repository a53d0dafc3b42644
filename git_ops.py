import os
import shutil
import logging
import tempfile
from enum import Enum
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List

from git import Repo, GitCommandError, PushInfo

from sync_common import RepositoryRef

log = logging.getLogger("repo-automation")


class PushErrorKind(Enum):
    NONE = "none"
    REF_ALREADY_EXISTS = "ref-already-exists"
    OTHER = "other"


@dataclass(frozen=True)
class PushResult:
    kind: PushErrorKind
    summary: str = ""

    @property
    def pushed(self) -> bool:
        return self.kind is PushErrorKind.NONE


class GitPushError(Exception):
    def __init__(self, kind: PushErrorKind, summary: str):
        self.kind = kind
        self.summary = summary
        super().__init__(f"push failed ({kind.value}): {summary}")


def classify_push_flags(flags: int) -> PushErrorKind:
    """Map GitPython PushInfo flags for one ref to a PushErrorKind."""
    # "[rejected]" (non-fast-forward / fetch first) also carries ERROR, so test it first
    if flags & PushInfo.REJECTED:
        return PushErrorKind.REF_ALREADY_EXISTS
    if flags & (PushInfo.ERROR | PushInfo.REMOTE_REJECTED | PushInfo.REMOTE_FAILURE):
        return PushErrorKind.OTHER
    return PushErrorKind.NONE


class GitWorkspace:
    def __init__(self, repo: Repo):
        self.repo = repo

    @classmethod
    def clone(cls, url: str, dest: str) -> "GitWorkspace":
        return cls(Repo.clone_from(url, dest))

    @property
    def path(self) -> str:
        return self.repo.working_tree_dir

    def set_identity(self, name: str, email: str):
        with self.repo.config_writer() as cw:
            cw.set_value("user", "name", name)
            cw.set_value("user", "email", email)

    def checkout_new_branch(self, name: str):
        self.repo.git.checkout("-b", name)

    def stage(self, paths: List[str]):
        if paths:
            self.repo.git.add("--", *paths)

    def commit(self, message: str):
        self.repo.git.commit("-m", message)

    def push(self, remote: str, branch: str) -> PushResult:
        refspec = f"refs/heads/{branch}:refs/heads/{branch}"
        try:
            infos = self.repo.remote(name=remote).push(refspec)
        except GitCommandError as e:
            raise GitPushError(PushErrorKind.OTHER, str(e).strip()) from e

        if not infos:
            raise GitPushError(PushErrorKind.OTHER, f"no ref updates reported for {branch}")

        for info in infos:
            kind = classify_push_flags(info.flags)
            if kind is PushErrorKind.REF_ALREADY_EXISTS:
                return PushResult(kind, info.summary.strip())
            if kind is PushErrorKind.OTHER:
                raise GitPushError(kind, info.summary.strip())

        if infos.error is not None:
            raise GitPushError(PushErrorKind.OTHER, str(infos.error).strip())
        return PushResult(PushErrorKind.NONE, infos[0].summary.strip())


@contextmanager
def scratch_clone(scratch_root: str, ref: RepositoryRef) -> Iterator[str]:
    """Private working directory for one repository, removed when the block exits."""
    os.makedirs(scratch_root, exist_ok=True)
    dest = tempfile.mkdtemp(prefix=f"{ref.owner}_{ref.name}-", dir=scratch_root)
    log.debug("Scratch directory for %s: %s", ref, dest)
    try:
        yield dest
    finally:
        shutil.rmtree(dest)
