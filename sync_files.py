#!/usr/bin/env python3
# GITHUB_TOKEN=github_pat_xxxx python sync_files.py [--repos-file repos.json] [--template-dir files-to-sync]
# Copies files-to-sync/ into every repo in repos.json and opens a PR when anything differs.
import os
import sys
import shutil
import hashlib
import logging
import argparse
import tempfile
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List

from github_client import GitHubClient
from git_ops import GitWorkspace, PushErrorKind, scratch_clone
from sync_common import (ItemResult, Outcome, RepositoryRef, RunSummary,
                         load_repos, require_token, setup_logging)

# ========= CONFIG =========
ROOT_DIR = os.path.dirname(os.path.abspath(__file__))
SOURCE_FILES_DIR = os.path.join(ROOT_DIR, "files-to-sync")
REPOS_FILE = os.path.join(ROOT_DIR, "repos.json")

BRANCH_PREFIX = "sync-files"
BASE_BRANCH = "main"
BOT_NAME = "Source Files"
BOT_EMAIL = "action@github.com"
COMMIT_MESSAGE = "sync: update source files"
PR_TITLE = "Sync source files"
PR_BODY = "This PR syncs files from the source repository."
HASH_WORKERS = 8
# ==========================

log = logging.getLogger("repo-automation")


def discover_manifest(template_dir: str) -> List[str]:
    """Relative POSIX paths of every regular file under template_dir, sorted."""
    files = []
    for dirpath, dirnames, filenames in os.walk(template_dir):
        for name in filenames:
            full = os.path.join(dirpath, name)
            if not os.path.isfile(full):
                continue
            rel = os.path.relpath(full, template_dir)
            files.append(rel.replace(os.sep, "/"))
    files.sort()
    return files


def file_sha256(path: str) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            h.update(chunk)
    return h.hexdigest()


def _file_differs(source: str, target: str) -> bool:
    try:
        return file_sha256(source) != file_sha256(target)
    except OSError:
        # missing or unreadable target means it needs syncing
        return True


def detect_changes(template_dir: str, target_dir: str, manifest: List[str]) -> List[str]:
    """Return the manifest entries whose target copy is missing or has different content."""
    with ThreadPoolExecutor(max_workers=HASH_WORKERS) as pool:
        flags = list(pool.map(
            lambda rel: _file_differs(os.path.join(template_dir, rel), os.path.join(target_dir, rel)),
            manifest,
        ))
    return [rel for rel, differs in zip(manifest, flags) if differs]


def materialize(template_dir: str, target_dir: str, changed: List[str]):
    for rel in changed:
        target = os.path.join(target_dir, rel)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        shutil.copyfile(os.path.join(template_dir, rel), target)
        log.debug("  copied %s", rel)


def _path_content_digest(template_dir: str, rel: str) -> str:
    with open(os.path.join(template_dir, rel), "rb") as f:
        content = f.read()
    return hashlib.sha256(rel.encode("utf-8") + b"\0" + content).hexdigest()


def compute_sync_hash(template_dir: str, manifest: List[str]) -> str:
    """
    8-char fingerprint of the whole template (relative path + bytes of every file).
    Same template content -> same hash, so a re-run finds the PR it already opened.
    """
    with ThreadPoolExecutor(max_workers=HASH_WORKERS) as pool:
        digests = list(pool.map(lambda rel: _path_content_digest(template_dir, rel), manifest))
    return hashlib.sha256("".join(digests).encode("ascii")).hexdigest()[:8]


def branch_name(sync_hash: str, prefix: str = BRANCH_PREFIX) -> str:
    return f"{prefix}/{sync_hash}"


def sync_repo(ref: RepositoryRef, template_dir: str, workspace, client: GitHubClient,
              base_branch: str = BASE_BRANCH, dry_run: bool = False) -> ItemResult:
    manifest = discover_manifest(template_dir)
    changed = detect_changes(template_dir, workspace.path, manifest)
    if not changed:
        log.info("%s is already up to date", ref)
        return ItemResult(str(ref), Outcome.UNCHANGED)

    log.info("%s: %d of %d files differ", ref, len(changed), len(manifest))
    materialize(template_dir, workspace.path, changed)

    branch = branch_name(compute_sync_hash(template_dir, manifest))
    if dry_run:
        log.info("[DRY-RUN] would commit %s to %s and open a PR", ", ".join(changed), branch)
        return ItemResult(str(ref), Outcome.SKIPPED, f"dry-run: {branch}")

    workspace.set_identity(BOT_NAME, BOT_EMAIL)
    workspace.checkout_new_branch(branch)
    workspace.stage(manifest)
    workspace.commit(COMMIT_MESSAGE)

    pushed = workspace.push("origin", branch)
    if pushed.kind is PushErrorKind.REF_ALREADY_EXISTS:
        log.warning("Branch %s already exists on %s. Skipping push and PR.", branch, ref)
        return ItemResult(str(ref), Outcome.ALREADY_PUSHED, branch)

    prs = client.list_open_pull_requests(ref.owner, ref.name, head=f"{ref.owner}:{branch}")
    if prs:
        log.info("PR already open for %s: %s", branch, prs[0].get("html_url", ""))
    else:
        pr = client.create_pull_request(ref.owner, ref.name, title=PR_TITLE, head=branch,
                                        base=base_branch, body=PR_BODY)
        log.info("Opened PR for %s: %s", ref, pr.get("html_url", ""))
    return ItemResult(str(ref), Outcome.SYNCED, branch)


def sync_all(repos: List[RepositoryRef], template_dir: str, scratch_root: str, client: GitHubClient,
             clone: Callable[[str, str], GitWorkspace] = GitWorkspace.clone,
             base_branch: str = BASE_BRANCH, dry_run: bool = False) -> RunSummary:
    summary = RunSummary()
    for ref in repos:
        try:
            with scratch_clone(scratch_root, ref) as dest:
                workspace = clone(client.clone_url(ref), dest)
                result = sync_repo(ref, template_dir, workspace, client,
                                   base_branch=base_branch, dry_run=dry_run)
        except Exception as e:
            log.exception("Failed to sync %s", ref)
            result = ItemResult(str(ref), Outcome.FAILED, str(e))
        else:
            log.info("Synced %s (%s)", ref, result.outcome.value)
        summary.add(result)
    return summary


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Sync template files into GitHub repos via pull requests.")
    p.add_argument("--repos-file", default=REPOS_FILE, help="Repo list JSON (default: %(default)s)")
    p.add_argument("--template-dir", default=SOURCE_FILES_DIR, help="Files to sync (default: %(default)s)")
    p.add_argument("--base-branch", default=BASE_BRANCH, help="PR base branch (default: %(default)s)")
    p.add_argument("--dry-run", action="store_true", help="Clone and diff only; no commit, push or PR")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)
    token = require_token()

    if not os.path.isdir(args.template_dir):
        raise SystemExit(f"❌ ERROR: template directory not found: {args.template_dir}")
    repos = load_repos(args.repos_file)
    client = GitHubClient(token, dry_run=args.dry_run)

    with tempfile.TemporaryDirectory(prefix="repo-sync-") as scratch_root:
        summary = sync_all(repos, args.template_dir, scratch_root, client,
                           base_branch=args.base_branch, dry_run=args.dry_run)
    summary.log_summary("Sync complete")
    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
