"""Tests for gitdeck.orchestrator module."""

import pytest

from gitdeck.lib.errors import BackendError, ConflictError
from gitdeck.lib.types import FileState, FileStatus, OutcomeKind
from gitdeck.sinks import DELETE_COMMIT, FORCE_PUSH, UNDO_COMMIT

REJECTION = "git push failed: ! [rejected] main -> main (non-fast-forward)"


def staged(path="a.txt"):
    return FileStatus(path=path, status=FileState.MODIFIED, staged=True)


def unstaged(path="b.txt"):
    return FileStatus(path=path, status=FileState.MODIFIED, staged=False)


def pushes(backend):
    return [c[2] for c in backend.calls_to("push")]


class TestNoActiveRepository:
    """Without an active repository nothing is touched."""

    def test_returns_noop(self, orch, registry, backend):
        registry.close(backend.path)
        outcome = orch.commit("msg")
        assert outcome.kind is OutcomeKind.NOOP
        assert backend.calls == []
        assert orch.notifier.notices == []


class TestCommit:
    def test_zero_staged_never_commits(self, orch, backend):
        backend.files = [unstaged()]
        outcome = orch.commit("message")
        assert outcome.kind is OutcomeKind.PRECONDITION_FAILED
        assert "commit" not in backend.names()
        assert orch.notifier.levels == ["error"]

    @pytest.mark.parametrize("message", ["", "   ", "\n"])
    def test_blank_message_never_commits(self, orch, backend, message):
        backend.files = [staged()]
        outcome = orch.commit(message)
        assert outcome.kind is OutcomeKind.PRECONDITION_FAILED
        assert "commit" not in backend.names()

    def test_staged_check_uses_fresh_status_not_cache(self, orch, registry, backend):
        # Cache says something is staged, the backend says otherwise
        registry.active.file_statuses = [staged()]
        backend.files = []
        outcome = orch.commit("message")
        assert outcome.kind is OutcomeKind.PRECONDITION_FAILED

    def test_commit_refreshes_status_and_log(self, orch, backend):
        backend.files = [staged()]
        outcome = orch.commit("message")
        assert outcome.success
        names = backend.names()
        assert names.index("commit") < names.index("log")
        assert names[-2:] == ["status", "log"]

    def test_backend_failure_passed_through_verbatim(self, orch, backend):
        backend.files = [staged()]
        backend.fail("commit", BackendError("commit", "git commit failed: hook rejected"))
        outcome = orch.commit("message")
        assert outcome.kind is OutcomeKind.BACKEND_ERROR
        assert orch.notifier.notices == [("error", "git commit failed: hook rejected")]


class TestCommitAndPush:
    def test_no_credential_is_local_only_success(self, make_orchestrator, backend):
        orch = make_orchestrator(token=None)
        backend.files = [staged()]
        outcome = orch.commit_and_push("message")
        assert outcome.success
        assert outcome.local_only
        assert "commit" in backend.names()
        assert "push" not in backend.names()
        assert orch.notifier.levels == ["info"]

    def test_pushes_with_resolved_token(self, orch, backend):
        backend.files = [staged()]
        outcome = orch.commit_and_push("message")
        assert outcome.success
        assert pushes(backend) == [
            {"remote": None, "branch": None, "set_upstream": False, "force": False, "token": "tok"}
        ]
        assert orch.credentials.asked == ["work"]

    def test_commit_always_precedes_push(self, orch, backend):
        backend.files = [staged()]
        orch.commit_and_push("message")
        names = backend.names()
        assert names.index("commit") < names.index("push")

    def test_rejected_and_declined_issues_no_force_push(self, make_orchestrator, backend):
        orch = make_orchestrator(answers={FORCE_PUSH: False})
        backend.files = [staged()]
        backend.fail("push", BackendError("push", REJECTION))
        outcome = orch.commit_and_push("message")

        assert outcome.kind is OutcomeKind.REJECTED_NON_FAST_FORWARD
        assert outcome.message == REJECTION
        assert [p["force"] for p in pushes(backend)] == [False]
        assert [k for k, _ in orch.decisions.proposals] == [FORCE_PUSH]
        assert orch.notifier.notices == [("error", REJECTION)]

    def test_rejected_and_accepted_forces_exactly_once(self, make_orchestrator, backend):
        orch = make_orchestrator(answers={FORCE_PUSH: True})
        backend.files = [staged()]
        backend.fail("push", BackendError("push", REJECTION))
        outcome = orch.commit_and_push("message")

        assert outcome.success
        assert outcome.forced
        assert [p["force"] for p in pushes(backend)] == [False, True]

    def test_failed_force_push_not_retried(self, make_orchestrator, backend):
        orch = make_orchestrator(answers={FORCE_PUSH: True})
        backend.files = [staged()]
        backend.fail(
            "push",
            BackendError("push", REJECTION),
            BackendError("push", "git push failed: ! [remote rejected] main (protected branch)"),
        )
        outcome = orch.commit_and_push("message")

        assert not outcome.success
        assert "protected branch" in outcome.message
        assert len(pushes(backend)) == 2
        assert len(orch.decisions.proposals) == 1

    def test_hook_refusal_is_not_offered_force(self, orch, backend):
        backend.files = [staged()]
        backend.fail("push", BackendError("push", "git push failed: ! [remote rejected] main (pre-receive hook declined)"))
        outcome = orch.commit_and_push("message")
        assert outcome.kind is OutcomeKind.BACKEND_ERROR
        assert orch.decisions.proposals == []
        assert len(pushes(backend)) == 1

    def test_other_push_failure_is_not_offered_force(self, orch, backend):
        backend.files = [staged()]
        backend.fail("push", BackendError("push", "git push failed: could not resolve host"))
        outcome = orch.commit_and_push("message")
        assert outcome.kind is OutcomeKind.BACKEND_ERROR
        assert orch.decisions.proposals == []

    def test_commit_failure_aborts_chain(self, orch, backend):
        backend.files = [staged()]
        backend.fail("commit", BackendError("commit", "git commit failed"))
        orch.commit_and_push("message")
        assert "push" not in backend.names()

    def test_refreshes_even_when_push_fails(self, orch, backend):
        backend.files = [staged()]
        backend.fail("push", BackendError("push", "git push failed: timeout"))
        orch.commit_and_push("message")
        assert backend.names()[-2:] == ["status", "log"]


class TestSync:
    def test_success(self, orch, backend):
        outcome = orch.sync()
        assert outcome.success
        assert outcome.sync.pulled and outcome.sync.pushed
        assert backend.names()[:2] == ["pull", "push"]

    def test_conflicts_block_push(self, orch, backend):
        backend.fail("pull", ConflictError("pull", ["shared.txt"], "Merge conflicts detected"))
        outcome = orch.sync()

        assert outcome.kind is OutcomeKind.CONFLICT_DETECTED
        assert outcome.conflicts == ("shared.txt",)
        assert outcome.sync.conflicts == ["shared.txt"]
        assert outcome.sync.pushed is False
        assert outcome.sync.pulled is False
        assert outcome.sync.error is None
        assert "push" not in backend.names()

    def test_pull_error_has_no_conflicts(self, orch, backend):
        backend.fail("pull", BackendError("pull", "git pull failed: no upstream"))
        outcome = orch.sync()
        assert outcome.kind is OutcomeKind.BACKEND_ERROR
        assert outcome.sync.conflicts == []
        assert outcome.sync.error == "git pull failed: no upstream"
        assert "push" not in backend.names()

    def test_push_rejection(self, orch, backend):
        backend.fail("push", BackendError("push", REJECTION))
        outcome = orch.sync()
        assert outcome.kind is OutcomeKind.REJECTED_NON_FAST_FORWARD
        assert outcome.sync.pulled is True
        assert outcome.sync.pushed is False

    @pytest.mark.parametrize("fail_on", [None, "pull", "push"])
    def test_always_refreshes(self, orch, backend, fail_on):
        if fail_on:
            backend.fail(fail_on, BackendError(fail_on, "boom"))
        orch.sync()
        assert backend.names()[-2:] == ["status", "log"]

    def test_explicit_token_wins(self, orch, backend):
        orch.sync(token="explicit")
        assert backend.calls_to("pull")[0][2]["token"] == "explicit"
        assert orch.credentials.asked == []

    def test_no_token_runs_without_credential(self, make_orchestrator, backend):
        orch = make_orchestrator(token=None)
        outcome = orch.sync()
        assert outcome.success
        assert backend.calls_to("pull")[0][2]["token"] is None


class TestStageFiles:
    def test_idempotent(self, orch, registry, backend):
        orch.stage_files(["a.txt"])
        once = list(registry.active.file_statuses)
        orch.stage_files(["a.txt"])
        assert registry.active.file_statuses == once

    def test_refreshes_status(self, orch, backend):
        orch.stage_files(["a.txt"])
        assert backend.names() == ["stage", "status"]

    def test_empty_selection(self, orch, backend):
        outcome = orch.stage_files([])
        assert outcome.kind is OutcomeKind.PRECONDITION_FAILED
        assert "stage" not in backend.names()

    def test_stash_with_nothing_to_save(self, orch, backend):
        backend.stash_creates = False
        outcome = orch.stash_changes()
        assert outcome.success
        assert outcome.message == "No local changes to stash"


class TestGuardedBranchOperations:
    def test_clean_tree_not_stashed(self, orch, backend):
        outcome = orch.checkout_branch("dev")
        assert outcome.success
        assert "stash" not in backend.names()

    def test_dirty_tree_stashed_and_restored(self, orch, backend):
        backend.files = [unstaged()]
        orch.checkout_branch("dev", create=True)
        names = backend.names()
        assert names[:4] == ["status", "stash", "checkout", "stash_pop"]
        assert backend.calls_to("checkout")[0][1] == ("dev", True)

    def test_pop_runs_after_failed_body(self, orch, backend):
        backend.files = [unstaged()]
        backend.fail("merge", BackendError("merge", "git merge failed: unrelated histories"))
        outcome = orch.merge_branch("other")
        assert outcome.kind is OutcomeKind.BACKEND_ERROR
        assert backend.names()[:4] == ["status", "stash", "merge", "stash_pop"]

    def test_rebase_and_pop_both_fail(self, orch, backend):
        backend.files = [unstaged()]
        backend.fail("rebase", BackendError("rebase", "git rebase failed: could not apply abc123"))
        backend.fail("stash_pop", ConflictError("stash pop", ["b.txt"], "git stash pop failed: conflict"))
        outcome = orch.rebase_branch("main")

        assert outcome.kind is OutcomeKind.BACKEND_ERROR
        assert outcome.message == "git rebase failed: could not apply abc123"
        assert outcome.stash_not_restored
        assert orch.notifier.levels == ["error", "info"]
        assert "stash" in orch.notifier.notices[1][1]
        assert orch.notifier.notices[1][1].count("git stash pop failed") == 1

    def test_merge_conflict_reports_paths(self, orch, backend):
        backend.fail("merge", ConflictError("merge", ["x.txt", "y.txt"]))
        outcome = orch.merge_branch("feature")
        assert outcome.kind is OutcomeKind.CONFLICT_DETECTED
        assert outcome.conflicts == ("x.txt", "y.txt")

    def test_untracked_only_tree_does_not_pop_foreign_stash(self, orch, backend):
        backend.files = [FileStatus("new.txt", FileState.UNTRACKED, False)]
        backend.stash_creates = False
        outcome = orch.checkout_branch("feature")
        assert outcome.success
        assert "stash_pop" not in backend.names()

    def test_stash_failure_skips_body(self, orch, backend):
        backend.files = [unstaged()]
        backend.fail("stash", BackendError("stash", "git stash failed: index locked"))
        outcome = orch.checkout_branch("dev")
        assert outcome.kind is OutcomeKind.BACKEND_ERROR
        assert "checkout" not in backend.names()
        assert "stash_pop" not in backend.names()

    def test_refreshes_branches_status_log(self, orch, backend):
        orch.checkout_branch("dev")
        assert backend.names()[-3:] == ["status", "branches", "log"]


class TestResolveConflict:
    def test_refreshes_status_and_diff_for_path(self, orch, backend):
        outcome = orch.resolve_conflict("shared.txt", "ours")
        assert outcome.success
        assert backend.names() == ["resolve_conflict", "status", "diff"]
        assert backend.calls_to("diff")[0][1] == ("shared.txt",)

    def test_unknown_strategy(self, orch, backend):
        outcome = orch.resolve_conflict("shared.txt", "both")
        assert outcome.kind is OutcomeKind.PRECONDITION_FAILED
        assert "resolve_conflict" not in backend.names()


class TestDestructiveReset:
    def test_undo_asks_undo_confirmation(self, make_orchestrator, backend):
        orch = make_orchestrator(answers={UNDO_COMMIT: True})
        outcome = orch.undo_last_commit()
        assert outcome.success
        assert backend.calls_to("reset")[0][1] == ("soft", "HEAD~1")
        assert "push" not in backend.names()

    def test_undo_declined(self, orch, backend):
        outcome = orch.undo_last_commit()
        assert outcome.kind is OutcomeKind.DECLINED
        assert "reset" not in backend.names()
        assert orch.notifier.levels == ["info"]

    def test_delete_wording_differs_from_undo(self, make_orchestrator):
        orch = make_orchestrator()
        orch.undo_last_commit()
        orch.delete_last_commit()
        (undo_kind, undo_text), (delete_kind, delete_text) = orch.decisions.proposals
        assert (undo_kind, delete_kind) == (UNDO_COMMIT, DELETE_COMMIT)
        assert undo_text != delete_text
        assert "cannot be undone" in delete_text

    def test_delete_declined_touches_nothing(self, orch, backend):
        outcome = orch.delete_last_commit()
        assert outcome.kind is OutcomeKind.DECLINED
        assert "reset" not in backend.names()

    def test_delete_without_credential_refuses_force_push(self, make_orchestrator, backend):
        orch = make_orchestrator(token=None, answers={DELETE_COMMIT: True})
        outcome = orch.delete_last_commit()
        assert outcome.success
        assert outcome.local_only
        assert "remote not rewritten" in outcome.message
        assert backend.calls_to("reset")[0][1] == ("hard", "HEAD~1")
        assert "push" not in backend.names()

    def test_delete_with_credential_force_pushes(self, make_orchestrator, backend):
        orch = make_orchestrator(answers={DELETE_COMMIT: True})
        outcome = orch.delete_last_commit()
        assert outcome.forced
        assert pushes(backend) == [
            {"remote": None, "branch": None, "set_upstream": False, "force": True, "token": "tok"}
        ]


class TestHistoryOperations:
    def test_never_stash_wrapped(self, orch, backend):
        backend.files = [unstaged()]
        orch.cherry_pick("abc1234")
        orch.reword_commit("better")
        orch.squash_commits(2, "combined")
        orch.create_tag("v1")
        assert "stash" not in backend.names()

    def test_squash_needs_two_commits(self, orch, backend):
        outcome = orch.squash_commits(1, "msg")
        assert outcome.kind is OutcomeKind.PRECONDITION_FAILED
        assert "squash_commits" not in backend.names()

    def test_reword_refreshes_log_only(self, orch, backend):
        orch.reword_commit("better")
        assert backend.names() == ["reword_commit", "log"]

    def test_cherry_pick_conflict(self, orch, backend):
        backend.fail("cherry_pick", ConflictError("cherry-pick", ["a.txt"]))
        outcome = orch.cherry_pick("abc1234")
        assert outcome.conflicts == ("a.txt",)

    def test_tag_ops_refresh_tags(self, orch, backend):
        orch.create_tag("v1", "Release", "abc")
        assert backend.names() == ["create_tag", "tags"]
        assert backend.calls_to("create_tag")[0][1] == ("v1", "Release", "abc")

    def test_push_tag_requires_credential(self, make_orchestrator, backend):
        orch = make_orchestrator(token=None)
        outcome = orch.push_tag("v1")
        assert outcome.kind is OutcomeKind.PRECONDITION_FAILED
        assert "push_tag" not in backend.names()

    def test_delete_remote_tag(self, orch, backend):
        orch.delete_remote_tag("v1")
        assert backend.calls_to("delete_remote_tag")[0][2] == {"token": "tok"}


class TestBranchManagement:
    def test_publish_sets_upstream(self, orch, backend):
        orch.publish_branch()
        assert pushes(backend) == [
            {"remote": "origin", "branch": "main", "set_upstream": True, "force": False, "token": "tok"}
        ]

    def test_publish_detached_head(self, orch, backend):
        backend.branch = None
        outcome = orch.publish_branch()
        assert outcome.kind is OutcomeKind.PRECONDITION_FAILED
        assert "push" not in backend.names()

    def test_cannot_delete_current_branch(self, orch, backend):
        outcome = orch.delete_branch("main")
        assert outcome.kind is OutcomeKind.PRECONDITION_FAILED
        assert "delete_branch" not in backend.names()

    def test_delete_remote_branch(self, orch, backend):
        orch.delete_remote_branch("old")
        assert backend.calls_to("delete_remote_branch")[0][1] == ("origin", "old")


class TestInFlight:
    def test_reentrant_call_rejected(self, orch, backend):
        inner = []
        backend.on["stage"] = lambda: inner.append(orch.commit("nested"))
        outcome = orch.stage_files(["a.txt"])

        assert outcome.success
        assert inner[0].kind is OutcomeKind.PRECONDITION_FAILED
        assert "in progress" in inner[0].message
        assert "commit" not in backend.names()
        assert not orch.busy

    def test_flag_cleared_after_unexpected_error(self, orch, backend):
        backend.fail("stage", RuntimeError("bug"))
        with pytest.raises(RuntimeError):
            orch.stage_files(["a.txt"])
        assert not orch.busy
        # Refresh still ran
        assert backend.names()[-1] == "status"

    def test_flag_cleared_after_backend_error(self, orch, backend):
        backend.fail("stage", BackendError("add", "git add failed"))
        orch.stage_files(["a.txt"])
        assert not orch.busy
        assert orch.stage_files(["a.txt"]).success


class TestRefresh:
    def test_refresh_loads_everything_quietly(self, orch, backend):
        outcome = orch.refresh()
        assert outcome.success
        assert set(backend.names()) == {"reflog", "status", "branches", "log", "tags", "diff"}
        assert orch.notifier.notices == []
