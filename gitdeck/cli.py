#!/usr/bin/env python3
"""gitdeck CLI entrypoint.

Each invocation opens one repository, runs one orchestrator operation
under the per-repository lock and maps the outcome to an exit code.
"""

import argparse
import logging
import os
import sys
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path

from gitdeck.git.backend import GitBackend
from gitdeck.lib.accounts import CredentialProvider, load_accounts
from gitdeck.lib.config import Settings, load_settings
from gitdeck.lib.errors import ConfigError
from gitdeck.lib.types import MutationOutcome, OutcomeKind, RepositoryHandle
from gitdeck.locking import LockTimeout, repo_lock
from gitdeck.orchestrator import MutationOrchestrator
from gitdeck.session import SessionRegistry
from gitdeck.sinks import (
    AutoAcceptDecisionSink,
    ConsoleDecisionSink,
    ConsoleNotifier,
    DesktopNotifier,
    MultiNotifier,
)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_CONFLICTS = 3
EXIT_LOCKED = 4

EXIT_CODES = {
    OutcomeKind.COMPLETED: EXIT_OK,
    OutcomeKind.DECLINED: EXIT_OK,
    OutcomeKind.CONFLICT_DETECTED: EXIT_CONFLICTS,
}

LOG_LEVEL_ENV_VAR = "GITDECK_LOG_LEVEL"

logger = logging.getLogger("gitdeck")


@dataclass
class Context:
    settings: Settings
    credentials: CredentialProvider
    registry: SessionRegistry
    orchestrator: MutationOrchestrator

    @property
    def session(self):
        return self.registry.active


def configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.environ.get(LOG_LEVEL_ENV_VAR, "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_context(args) -> Context:
    """Load configuration and wire the orchestrator for one repository."""
    settings = load_settings()
    credentials = load_accounts(settings.accounts_path, settings.default_identity)

    def backend_factory(handle: RepositoryHandle) -> GitBackend:
        account = credentials.get_identity(handle.identity)
        return GitBackend(
            handle.path,
            identity=account.author if account else None,
            remote=settings.default_remote,
        )

    registry = SessionRegistry(backend_factory, log_limit=settings.log_limit)
    registry.open(args.repo, identity=args.identity)

    notifier = ConsoleNotifier()
    if settings.desktop_notifications:
        notifier = MultiNotifier(notifier, DesktopNotifier())
    decisions = AutoAcceptDecisionSink() if args.yes else ConsoleDecisionSink()

    orchestrator = MutationOrchestrator(
        registry,
        decisions=decisions,
        notifier=notifier,
        credentials=credentials,
        remote=settings.default_remote,
    )
    return Context(settings, credentials, registry, orchestrator)


def exit_code_for(outcome: MutationOutcome) -> int:
    return EXIT_CODES.get(outcome.kind, EXIT_FAILED)


def report_conflicts(outcome: MutationOutcome) -> None:
    if outcome.conflicts:
        print("Conflicted files:", file=sys.stderr)
        for path in outcome.conflicts:
            print(f"  {path}", file=sys.stderr)


# ── Read commands ──

def cmd_status(args, ctx: Context) -> int:
    session = ctx.session
    session.refresh(("status", "branches"))
    print(f"On branch {session.current_branch or '(detached)'}")
    if not session.file_statuses:
        print("Nothing to commit, working tree clean")
        return EXIT_OK
    for f in session.file_statuses:
        marker = "S" if f.staged else " "
        rename = f" (from {f.old_path})" if f.old_path else ""
        print(f"  {marker} {f.status.value:<10} {f.path}{rename}")
    return EXIT_OK


def cmd_log(args, ctx: Context) -> int:
    session = ctx.session
    if args.limit:
        session.log_limit = args.limit
    if args.reflog:
        session.refresh_reflog()
        for entry in session.reflog:
            print(f"{entry.short_hash} HEAD@{{{entry.index}}} {entry.action:<12} {entry.description}")
        return EXIT_OK
    session.refresh(("log",))
    for c in session.commits:
        refs = f" ({c.refs})" if c.refs else ""
        print(f"{c.short_hash} {c.message}{refs}  [{c.author}, {c.date}]")
    return EXIT_OK


def cmd_branches(args, ctx: Context) -> int:
    session = ctx.session
    session.refresh(("branches",))
    for b in session.branches:
        if b.remote and not args.all:
            continue
        marker = "*" if b.current else " "
        name = f"remotes/{b.name}" if b.remote else b.name
        print(f"{marker} {name:<30} {b.last_commit or ''}")
    return EXIT_OK


def cmd_tags(args, ctx: Context) -> int:
    session = ctx.session
    session.refresh(("tags",))
    for t in session.tags:
        print(f"{t.name:<20} {t.hash:<9} {t.date}  {t.message}")
    return EXIT_OK


# ── Mutations ──

def _mutation(call):
    """Build a command function that runs one orchestrator call."""
    def run(args, ctx: Context) -> int:
        outcome = call(ctx.orchestrator, args)
        report_conflicts(outcome)
        return exit_code_for(outcome)
    run.mutates = True
    return run


cmd_stage = _mutation(lambda o, a: o.stage_files(a.paths))
cmd_unstage = _mutation(lambda o, a: o.unstage_files(a.paths))
cmd_commit = _mutation(lambda o, a: o.commit(a.message))
cmd_commit_push = _mutation(lambda o, a: o.commit_and_push(a.message))
cmd_sync = _mutation(lambda o, a: o.sync())
cmd_publish = _mutation(lambda o, a: o.publish_branch())
cmd_checkout = _mutation(
    lambda o, a: o.checkout_commit(a.target) if a.detach else o.checkout_branch(a.target, create=a.create)
)
cmd_merge = _mutation(lambda o, a: o.merge_branch(a.branch))
cmd_rebase = _mutation(lambda o, a: o.rebase_branch(a.branch))
cmd_delete_branch = _mutation(
    lambda o, a: o.delete_remote_branch(a.name, a.remote) if a.remote else o.delete_branch(a.name)
)
cmd_stash = _mutation(lambda o, a: o.stash_changes())
cmd_pop = _mutation(lambda o, a: o.pop_stash())
cmd_discard = _mutation(lambda o, a: o.discard_changes(a.path))
cmd_clean = _mutation(lambda o, a: o.clean_file(a.path))
cmd_resolve = _mutation(lambda o, a: o.resolve_conflict(a.path, a.strategy))
cmd_undo = _mutation(lambda o, a: o.undo_last_commit())
cmd_delete_last = _mutation(lambda o, a: o.delete_last_commit())
cmd_revert = _mutation(lambda o, a: o.revert_last_commit())
cmd_cherry_pick = _mutation(lambda o, a: o.cherry_pick(a.sha))
cmd_squash = _mutation(lambda o, a: o.squash_commits(a.count, a.message))
cmd_reword = _mutation(lambda o, a: o.reword_commit(a.message))
cmd_tag_create = _mutation(lambda o, a: o.create_tag(a.name, a.message, a.sha))
cmd_tag_push = _mutation(lambda o, a: o.push_tag(a.name))
cmd_tag_delete = _mutation(
    lambda o, a: o.delete_remote_tag(a.name) if a.remote else o.delete_tag(a.name)
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='gitdeck', description='Git repository mutation and sync')
    parser.add_argument('--repo', '-C', default='.', help='Repository path (default: current directory)')
    parser.add_argument('--identity', '-i', help='Account from accounts.yaml used for network operations')
    parser.add_argument('--yes', '-y', action='store_true', help='Accept every risky-action prompt')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    p = subparsers.add_parser('status', help='Show working tree status')
    p.set_defaults(func=cmd_status)

    p = subparsers.add_parser('log', help='Show recent commits')
    p.add_argument('--limit', '-n', type=int, help='Number of entries')
    p.add_argument('--reflog', action='store_true', help='Show HEAD movements instead')
    p.set_defaults(func=cmd_log)

    p = subparsers.add_parser('branches', help='List branches')
    p.add_argument('--all', '-a', action='store_true', help='Include remote branches')
    p.set_defaults(func=cmd_branches)

    p = subparsers.add_parser('tags', help='List tags')
    p.set_defaults(func=cmd_tags)

    p = subparsers.add_parser('stage', help='Stage files')
    p.add_argument('paths', nargs='+')
    p.set_defaults(func=cmd_stage)

    p = subparsers.add_parser('unstage', help='Unstage files')
    p.add_argument('paths', nargs='+')
    p.set_defaults(func=cmd_unstage)

    p = subparsers.add_parser('commit', help='Commit staged files')
    p.add_argument('-m', '--message', required=True)
    p.set_defaults(func=cmd_commit)

    p = subparsers.add_parser('commit-push', help='Commit staged files and push')
    p.add_argument('-m', '--message', required=True)
    p.set_defaults(func=cmd_commit_push)

    p = subparsers.add_parser('sync', help='Pull (rebase) then push')
    p.set_defaults(func=cmd_sync)

    p = subparsers.add_parser('publish', help='Push the current branch and set its upstream')
    p.set_defaults(func=cmd_publish)

    p = subparsers.add_parser('checkout', help='Switch branch (local changes are stashed and restored)')
    p.add_argument('target', help='Branch name, or commit with --detach')
    p.add_argument('-b', '--create', action='store_true', help='Create the branch')
    p.add_argument('--detach', action='store_true', help='Check out a commit')
    p.set_defaults(func=cmd_checkout)

    p = subparsers.add_parser('merge', help='Merge a branch into the current one')
    p.add_argument('branch')
    p.set_defaults(func=cmd_merge)

    p = subparsers.add_parser('rebase', help='Rebase the current branch')
    p.add_argument('branch')
    p.set_defaults(func=cmd_rebase)

    p = subparsers.add_parser('delete-branch', help='Delete a branch')
    p.add_argument('name')
    p.add_argument('--remote', '-r', nargs='?', const='origin', help='Delete on this remote instead')
    p.set_defaults(func=cmd_delete_branch)

    p = subparsers.add_parser('stash', help='Stash local changes')
    p.set_defaults(func=cmd_stash)

    p = subparsers.add_parser('pop', help='Apply and drop the latest stash')
    p.set_defaults(func=cmd_pop)

    p = subparsers.add_parser('discard', help='Discard changes to a tracked file')
    p.add_argument('path')
    p.set_defaults(func=cmd_discard)

    p = subparsers.add_parser('clean', help='Delete an untracked file')
    p.add_argument('path')
    p.set_defaults(func=cmd_clean)

    p = subparsers.add_parser('resolve', help='Resolve a conflicted file')
    p.add_argument('path')
    p.add_argument('strategy', choices=['ours', 'theirs'])
    p.set_defaults(func=cmd_resolve)

    p = subparsers.add_parser('undo', help='Undo the last commit, keeping its changes staged')
    p.set_defaults(func=cmd_undo)

    p = subparsers.add_parser('delete-last', help='Delete the last commit and force push')
    p.set_defaults(func=cmd_delete_last)

    p = subparsers.add_parser('revert', help='Revert the last commit')
    p.set_defaults(func=cmd_revert)

    p = subparsers.add_parser('cherry-pick', help='Apply a commit onto the current branch')
    p.add_argument('sha')
    p.set_defaults(func=cmd_cherry_pick)

    p = subparsers.add_parser('squash', help='Squash the last N commits')
    p.add_argument('count', type=int)
    p.add_argument('-m', '--message', required=True)
    p.set_defaults(func=cmd_squash)

    p = subparsers.add_parser('reword', help='Change the last commit message')
    p.add_argument('-m', '--message', required=True)
    p.set_defaults(func=cmd_reword)

    p_tag = subparsers.add_parser('tag', help='Manage tags')
    tag_sub = p_tag.add_subparsers(dest='tag_command', required=True)

    p = tag_sub.add_parser('create', help='Create a tag')
    p.add_argument('name')
    p.add_argument('-m', '--message', help='Annotation (creates an annotated tag)')
    p.add_argument('sha', nargs='?', help='Commit to tag (default: HEAD)')
    p.set_defaults(func=cmd_tag_create)

    p = tag_sub.add_parser('push', help='Push a tag')
    p.add_argument('name')
    p.set_defaults(func=cmd_tag_push)

    p = tag_sub.add_parser('delete', help='Delete a tag')
    p.add_argument('name')
    p.add_argument('--remote', '-r', action='store_true', help='Delete it on the remote instead')
    p.set_defaults(func=cmd_tag_delete)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if not Path(args.repo).is_dir():
        print(f"ERROR: Not a directory: {args.repo}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        ctx = build_context(args)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG

    mutates = getattr(args.func, 'mutates', False)
    lock = (
        repo_lock(ctx.settings.locks_dir, ctx.session.handle.path, ctx.settings.lock_timeout)
        if mutates else nullcontext()
    )
    try:
        with lock:
            return args.func(args, ctx)
    except LockTimeout as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_LOCKED


if __name__ == '__main__':
    sys.exit(main())
