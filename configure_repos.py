#!/usr/bin/env python3
# GITHUB_TOKEN=github_pat_xxxx python configure_repos.py [--repos-file repos.json] [--dry-run]
# Applies branch protection rules and environments from repo-settings.json to each repo.
import os
import sys
import logging
import argparse
from typing import List

import requests

from github_client import GitHubClient, GitHubError
from sync_common import (ItemResult, Outcome, RepositoryRef, RepositorySettings, RunSummary,
                         load_repos, load_settings, require_token, setup_logging)

# ========= CONFIG =========
ROOT_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_PATH = os.path.join(ROOT_DIR, "repo-settings.json")

# Used when --repos-file is not given
REPOS = [
    "JonHolmanOrg/repo1",
]
# ==========================

log = logging.getLogger("repo-automation")


def apply_settings(client: GitHubClient, ref: RepositoryRef,
                   settings: RepositorySettings) -> List[ItemResult]:
    results: List[ItemResult] = []

    # ----- branch protection -----
    if settings.branch_protection:
        log.info("Configuring branch protection rules for %s", ref)
        for branch, rules in settings.branch_protection.items():
            item = f"{ref}@{branch}"
            log.info("  Protecting branch: %s", branch)
            try:
                client.update_branch_protection(ref.owner, ref.name, branch, rules)
            except (GitHubError, requests.RequestException) as e:
                log.error("  ✗ Failed to configure %s: %s", branch, e)
                results.append(ItemResult(item, Outcome.FAILED, str(e)))
                continue
            log.info("  ✓ %s configured successfully", branch)
            results.append(ItemResult(item, Outcome.APPLIED))
    else:
        log.info("No branch protection rules found in config")

    # ----- environments -----
    if settings.environments:
        log.info("Configuring environments for %s", ref)
        for env in settings.environments:
            item = f"{ref}:env/{env.environment_name}"
            log.info("  Configuring environment: %s", env.environment_name)
            try:
                client.create_or_update_environment(ref.owner, ref.name, env)
            except (GitHubError, requests.RequestException) as e:
                log.error("  ✗ Failed to configure %s: %s", env.environment_name, e)
                results.append(ItemResult(item, Outcome.FAILED, str(e)))
                continue
            log.info("  ✓ %s configured successfully", env.environment_name)
            results.append(ItemResult(item, Outcome.APPLIED))
    else:
        log.info("No environments found in config")

    return results


def configure_repos(client: GitHubClient, repos: List[RepositoryRef],
                    settings: RepositorySettings) -> RunSummary:
    summary = RunSummary()
    log.info("Configuring %d repositories...", len(repos))
    for ref in repos:
        log.info("Configuring repository: %s", ref)
        try:
            summary.extend(apply_settings(client, ref, settings))
        except Exception as e:
            log.exception("✗ Failed to configure %s", ref)
            summary.add(ItemResult(str(ref), Outcome.FAILED, str(e)))
    return summary


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Apply branch protection and environments to GitHub repos.")
    p.add_argument("--settings", default=CONFIG_PATH, help="Settings JSON (default: %(default)s)")
    p.add_argument("--repos-file", default=None,
                   help='JSON file with {"repos": ["owner/name", ...]}; defaults to the built-in list')
    p.add_argument("--dry-run", action="store_true", help="Log the API calls instead of sending them")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)
    token = require_token()

    settings = load_settings(args.settings)
    repos = load_repos(args.repos_file) if args.repos_file else [RepositoryRef.parse(r) for r in REPOS]

    client = GitHubClient(token, dry_run=args.dry_run)
    summary = configure_repos(client, repos, settings)
    summary.log_summary("Configuration complete")
    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
