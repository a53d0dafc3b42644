import json

import pytest

import sync_common
from sync_common import ItemResult, Outcome, RepositoryRef, RunSummary


def test_parse_repository_ref():
    ref = RepositoryRef.parse("JonHolmanOrg/repo1")
    assert (ref.owner, ref.name) == ("JonHolmanOrg", "repo1")
    assert ref.full_name == "JonHolmanOrg/repo1"
    assert str(ref) == "JonHolmanOrg/repo1"


@pytest.mark.parametrize("bad", ["repo1", "/repo1", "owner/", ""])
def test_parse_repository_ref_rejects_bad_input(bad):
    with pytest.raises(ValueError):
        RepositoryRef.parse(bad)


def test_load_settings(tmp_path):
    path = tmp_path / "repo-settings.json"
    path.write_text(json.dumps({
        "branchProtection": {"main": {"enforce_admins": True}},
        "environments": [{
            "environment_name": "production",
            "wait_timer": 30,
            "prevent_self_review": True,
            "reviewers": [{"type": "User", "id": 1}],
            "deployment_branch_policy": {"protected_branches": True, "custom_branch_policies": False},
        }],
    }))

    settings = sync_common.load_settings(str(path))

    assert settings.branch_protection == {"main": {"enforce_admins": True}}
    env = settings.environments[0]
    assert env.environment_name == "production"
    assert env.wait_timer == 30
    assert env.reviewers == [{"type": "User", "id": 1}]


def test_load_settings_defaults_to_empty(tmp_path):
    path = tmp_path / "repo-settings.json"
    path.write_text("{}")

    settings = sync_common.load_settings(str(path))

    assert settings.branch_protection == {}
    assert settings.environments == []


def test_environment_requires_name():
    with pytest.raises(ValueError):
        sync_common.EnvironmentSpec.from_dict({"wait_timer": 1})


def test_load_repos(tmp_path):
    path = tmp_path / "repos.json"
    path.write_text(json.dumps({"repos": ["a/b", "c/d"]}))

    assert sync_common.load_repos(str(path)) == [RepositoryRef("a", "b"), RepositoryRef("c", "d")]


def test_require_token(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "abc")
    assert sync_common.require_token() == "abc"


def test_require_token_missing(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    with pytest.raises(SystemExit):
        sync_common.require_token()


def test_run_summary():
    summary = RunSummary()
    summary.add(ItemResult("a", Outcome.APPLIED))
    summary.extend([ItemResult("b", Outcome.FAILED, "nope"), ItemResult("c", Outcome.APPLIED)])

    assert not summary.ok
    assert [r.item for r in summary.failed] == ["b"]
    assert summary.counts() == {"applied": 2, "failed": 1}
    assert RunSummary().ok
