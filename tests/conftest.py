import os

import pytest

from git_ops import PushErrorKind, PushResult
from github_client import GitHubError


class FakeGitHub:
    """Records calls; `fail_branches` / `fail_envs` make those items raise GitHubError."""

    def __init__(self, fail_branches=(), fail_envs=(), open_prs=None):
        self.fail_branches = set(fail_branches)
        self.fail_envs = set(fail_envs)
        self.open_prs = open_prs or []
        self.calls = []

    def clone_url(self, ref):
        return f"https://example.invalid/{ref.owner}/{ref.name}.git"

    def update_branch_protection(self, owner, repo, branch, rules):
        self.calls.append(("protect", owner, repo, branch, rules))
        if branch in self.fail_branches:
            raise GitHubError("PUT", f"/repos/{owner}/{repo}/branches/{branch}/protection", 404, "Branch not found")
        return {}

    def create_or_update_environment(self, owner, repo, environment):
        self.calls.append(("environment", owner, repo, environment.environment_name))
        if environment.environment_name in self.fail_envs:
            raise GitHubError("PUT", f"/repos/{owner}/{repo}/environments/x", 422, "Validation Failed")
        return {}

    def list_open_pull_requests(self, owner, repo, head):
        self.calls.append(("list_prs", owner, repo, head))
        return list(self.open_prs)

    def create_pull_request(self, owner, repo, title, head, base, body):
        self.calls.append(("create_pr", owner, repo, title, head, base, body))
        return {"html_url": f"https://github.com/{owner}/{repo}/pull/1"}

    def names(self):
        return [c[0] for c in self.calls]


class FakeWorkspace:
    """Stands in for GitWorkspace over a plain directory."""

    def __init__(self, path, push_kind=PushErrorKind.NONE, push_error=None):
        self.path = str(path)
        self.push_kind = push_kind
        self.push_error = push_error
        self.calls = []

    def set_identity(self, name, email):
        self.calls.append(("identity", name, email))

    def checkout_new_branch(self, name):
        self.calls.append(("checkout", name))

    def stage(self, paths):
        self.calls.append(("stage", list(paths)))

    def commit(self, message):
        self.calls.append(("commit", message))

    def push(self, remote, branch):
        self.calls.append(("push", remote, branch))
        if self.push_error is not None:
            raise self.push_error
        return PushResult(self.push_kind, "")

    def names(self):
        return [c[0] for c in self.calls]


def write_tree(root, files):
    for rel, content in files.items():
        path = os.path.join(str(root), rel)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        mode = "wb" if isinstance(content, bytes) else "w"
        with open(path, mode) as f:
            f.write(content)


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def template_dir(tmp_path):
    path = tmp_path / "files-to-sync"
    path.mkdir()
    return path


@pytest.fixture
def target_dir(tmp_path):
    path = tmp_path / "clone"
    path.mkdir()
    return path
