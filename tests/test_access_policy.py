"""Tests for the capability table and ownership checks."""

import pytest

from app.core.errors import ForbiddenError, UnauthorizedError
from app.models.user import RequestUser, UserRole
from app.services.access_policy import Action, is_admin, is_supervisor, owns_report, require_capability
from tests.conftest import ADMIN, OTHER_SUPERVISOR, SUPERVISOR


class TestRolePredicates:
    def test_admin(self) -> None:
        assert is_admin(ADMIN)
        assert not is_admin(SUPERVISOR)
        assert not is_admin(None)

    def test_supervisor(self) -> None:
        assert is_supervisor(SUPERVISOR)
        assert not is_supervisor(ADMIN)
        assert not is_supervisor(None)


class TestOwnership:
    def test_unassigned_report_is_owned_by_anyone(self) -> None:
        assert owns_report(OTHER_SUPERVISOR, {"supervisor_id": None})

    def test_matches_supervisor_id(self) -> None:
        assert owns_report(SUPERVISOR, {"supervisor_id": SUPERVISOR.id})
        assert not owns_report(OTHER_SUPERVISOR, {"supervisor_id": SUPERVISOR.id})

    def test_matches_block(self) -> None:
        assert owns_report(SUPERVISOR, {"supervisor_id": "B1"})

    def test_no_block_does_not_match_none(self) -> None:
        floating = RequestUser(id="sup-9", email="sup9@ripple.test", role=UserRole.SUPERVISOR, block_id=None)
        assert not owns_report(floating, {"supervisor_id": "sup-1"})

    def test_no_actor(self) -> None:
        assert not owns_report(None, {"supervisor_id": None})


class TestRequireCapability:
    @pytest.mark.parametrize("action", [Action.START_TRIAGE, Action.RESOLVE_MANUALLY, Action.LIST_ALL_REPORTS])
    def test_admin_only_actions(self, action: Action) -> None:
        require_capability(ADMIN, action)
        with pytest.raises(UnauthorizedError):
            require_capability(SUPERVISOR, action)

    @pytest.mark.parametrize("action", [Action.ASSIGN_WORKER, Action.COMPLETE_WORK, Action.LIST_SUPERVISOR_REPORTS])
    def test_supervisor_only_actions(self, action: Action) -> None:
        require_capability(SUPERVISOR, action)
        with pytest.raises(UnauthorizedError):
            require_capability(ADMIN, action)

    def test_anonymous_is_unauthorized(self) -> None:
        with pytest.raises(UnauthorizedError) as exc:
            require_capability(None, Action.VIEW_REPORT)
        assert exc.value.status_code == 401

    def test_foreign_report_is_forbidden(self) -> None:
        report = {"id": "r1", "supervisor_id": SUPERVISOR.id}
        require_capability(SUPERVISOR, Action.COMPLETE_WORK, report)
        with pytest.raises(ForbiddenError) as exc:
            require_capability(OTHER_SUPERVISOR, Action.COMPLETE_WORK, report)
        assert exc.value.status_code == 403

    def test_admin_reverify_skips_ownership(self) -> None:
        require_capability(ADMIN, Action.REVERIFY, {"id": "r1", "supervisor_id": SUPERVISOR.id})

    def test_every_action_has_a_capability(self) -> None:
        for action in Action:
            require_capability(ADMIN if action in (
                Action.START_TRIAGE, Action.RESOLVE_MANUALLY, Action.LIST_ALL_REPORTS,
                Action.REVERIFY, Action.VIEW_REPORT,
            ) else SUPERVISOR, action)
