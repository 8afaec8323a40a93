"""Git primitives for gitdeck.

Every function spawns one git command through run_git() and never
raises for a failed command.

Return type conventions:
- Functions returning GitResult: caller must check .success before using output.
  Examples: stage_files(), create_commit(), push(), pull(), get_log()
- Functions returning parsed values (str, list): return empty/None on failure.
  Examples: get_current_branch() -> None, get_conflicted_files() -> []
- parse_* functions turn the stdout of the matching command into types.

The VcsBackend built on top of these lives in gitdeck.git.backend.
"""

from gitdeck.git.runner import (
    GitResult,
    Identity,
    run_git,
)
from gitdeck.git.status import (
    get_status,
    parse_status_v2,
)
from gitdeck.git.diff import (
    get_diff,
    get_conflicted_files,
)
from gitdeck.git.branch import (
    list_branches,
    parse_branches,
    get_current_branch,
    checkout_branch,
    checkout_commit,
    delete_branch,
    delete_remote_branch,
    merge,
    rebase,
)
from gitdeck.git.commit import (
    stage_files,
    unstage_files,
    create_commit,
    amend_message,
    reset,
    squash,
    revert_head,
    cherry_pick,
    discard_file,
    clean_file,
    resolve_conflict,
)
from gitdeck.git.remote import (
    push,
    pull,
    push_tag,
    delete_remote_tag,
)
from gitdeck.git.stash import (
    stash_push,
    stash_created,
    stash_pop,
)
from gitdeck.git.history import (
    get_log,
    parse_log,
    list_tags,
    parse_tags,
    create_tag,
    delete_tag,
    get_reflog,
    parse_reflog,
)

__all__ = [
    # runner
    "GitResult",
    "Identity",
    "run_git",
    # status
    "get_status",
    "parse_status_v2",
    # diff
    "get_diff",
    "get_conflicted_files",
    # branch
    "list_branches",
    "parse_branches",
    "get_current_branch",
    "checkout_branch",
    "checkout_commit",
    "delete_branch",
    "delete_remote_branch",
    "merge",
    "rebase",
    # commit
    "stage_files",
    "unstage_files",
    "create_commit",
    "amend_message",
    "reset",
    "squash",
    "revert_head",
    "cherry_pick",
    "discard_file",
    "clean_file",
    "resolve_conflict",
    # remote
    "push",
    "pull",
    "push_tag",
    "delete_remote_tag",
    # stash
    "stash_push",
    "stash_created",
    "stash_pop",
    # history
    "get_log",
    "parse_log",
    "list_tags",
    "parse_tags",
    "create_tag",
    "delete_tag",
    "get_reflog",
    "parse_reflog",
]
