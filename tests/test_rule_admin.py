"""Unit tests for assignment rule administration and its input DTO"""
import pytest
from pydantic import ValidationError

from ticket_routing.core import ResourceNotFoundException, ValidationException
from ticket_routing.routing.application import (
    AssignmentRuleAdminService, AssignmentRuleDTO, RuleReorderDTO,
)
from ticket_routing.routing.domain import Agent, Team, TeamTarget, UserTarget
from conftest import InMemoryDirectory, user_rule


@pytest.fixture
def directory():
    return InMemoryDirectory(
        agents=[Agent(id=10, name="ana"), Agent(id=11, name="bo")],
        teams=[Team(id=30, name="billing")],
        categories=[5],
    )


@pytest.fixture
def admin(rule_repo, directory, rule_set):
    return AssignmentRuleAdminService(rule_repo, directory, rule_set)


class TestAssignmentRuleDTO:
    def test_team_type_clears_user_target(self):
        dto = AssignmentRuleDTO(assignee_type="TEAM", assigned_to=10, support_team_id=30)

        assert dto.assignee_type == "team"
        assert dto.assigned_to is None
        assert dto.target() == TeamTarget(30)

    def test_user_type_clears_team_target(self):
        dto = AssignmentRuleDTO(assignee_type="user", assigned_to=10, support_team_id=30)

        assert dto.support_team_id is None
        assert dto.target() == UserTarget(10)

    def test_blank_values_become_none(self):
        dto = AssignmentRuleDTO.model_validate({
            "assignee_type": " user ",
            "assigned_to": "10",
            "priority": "",
            "support_ticket_category_id": "null",
        })

        assert dto.priority is None
        assert dto.support_ticket_category_id is None
        assert dto.assigned_to == 10

    def test_declared_target_is_required(self):
        with pytest.raises(ValidationError):
            AssignmentRuleDTO(assignee_type="team", assigned_to=10)

        with pytest.raises(ValidationError):
            AssignmentRuleDTO(assignee_type="user", support_team_id=30)

    def test_unknown_priority_is_rejected(self):
        with pytest.raises(ValidationError):
            AssignmentRuleDTO(assignee_type="user", assigned_to=10, priority="urgent")


class TestCreateRule:
    async def test_appends_after_last_position(self, admin, rule_repo):
        rule_repo.rules = {1: user_rule(1, 10, position=4)}

        created = await admin.create_rule(
            AssignmentRuleDTO(assignee_type="team", support_team_id=30, priority="high")
        )

        assert created.id == 2
        assert created.position == 5
        assert created.target == TeamTarget(30)
        assert created.priority == "high"

    async def test_first_rule_gets_position_one(self, admin):
        created = await admin.create_rule(AssignmentRuleDTO(assignee_type="user", assigned_to=10))

        assert created.position == 1

    async def test_invalidates_cache(self, admin, rule_set, rule_repo):
        await rule_set.rules()

        await admin.create_rule(AssignmentRuleDTO(assignee_type="user", assigned_to=10))

        assert [r.id for r in await rule_set.rules()] == [1]

    async def test_unknown_references_are_rejected(self, admin, rule_repo):
        with pytest.raises(ValidationException) as exc_info:
            await admin.create_rule(AssignmentRuleDTO(
                assignee_type="user", assigned_to=99, support_ticket_category_id=77
            ))

        assert set(exc_info.value.details) == {"assigned_to", "support_ticket_category_id"}
        assert rule_repo.rules == {}

    async def test_unknown_team_is_rejected(self, admin):
        with pytest.raises(ValidationException) as exc_info:
            await admin.create_rule(AssignmentRuleDTO(assignee_type="team", support_team_id=31))

        assert "support_team_id" in exc_info.value.details


class TestUpdateRule:
    async def test_switches_target_type(self, admin, rule_repo, rule_set):
        rule_repo.rules = {1: user_rule(1, 10, position=1)}
        await rule_set.rules()

        updated = await admin.update_rule(
            1, AssignmentRuleDTO(assignee_type="team", support_team_id=30, active=False)
        )

        assert updated.target == TeamTarget(30)
        assert updated.active is False
        assert updated.position == 1
        assert await rule_set.rules() == []

    async def test_missing_rule(self, admin):
        with pytest.raises(ResourceNotFoundException):
            await admin.update_rule(42, AssignmentRuleDTO(assignee_type="user", assigned_to=10))


class TestDeleteRule:
    async def test_closes_position_gap(self, admin, rule_repo):
        rule_repo.rules = {
            1: user_rule(1, 10, position=1),
            2: user_rule(2, 10, position=2),
            3: user_rule(3, 11, position=3),
        }

        await admin.delete_rule(2)

        assert {r.id: r.position for r in rule_repo.rules.values()} == {1: 1, 3: 2}

    async def test_missing_rule(self, admin):
        with pytest.raises(ResourceNotFoundException):
            await admin.delete_rule(42)


class TestReorderRule:
    @pytest.fixture(autouse=True)
    def three_rules(self, rule_repo):
        rule_repo.rules = {
            1: user_rule(1, 10, position=1),
            2: user_rule(2, 10, position=2),
            3: user_rule(3, 11, position=3),
        }

    def positions(self, rule_repo):
        return {r.id: r.position for r in rule_repo.rules.values()}

    async def test_move_up_swaps_with_previous(self, admin, rule_repo):
        moved = await admin.reorder_rule(3, RuleReorderDTO(direction="up"))

        assert moved.position == 2
        assert self.positions(rule_repo) == {1: 1, 2: 3, 3: 2}

    async def test_move_down_swaps_with_next(self, admin, rule_repo):
        await admin.reorder_rule(1, RuleReorderDTO(direction="down"))

        assert self.positions(rule_repo) == {1: 2, 2: 1, 3: 3}

    async def test_already_at_top(self, admin, rule_repo):
        with pytest.raises(ValidationException, match="top"):
            await admin.reorder_rule(1, RuleReorderDTO(direction="up"))

        assert self.positions(rule_repo) == {1: 1, 2: 2, 3: 3}

    async def test_already_at_bottom(self, admin):
        with pytest.raises(ValidationException, match="bottom"):
            await admin.reorder_rule(3, RuleReorderDTO(direction="down"))

    def test_invalid_direction(self):
        with pytest.raises(ValidationError):
            RuleReorderDTO(direction="sideways")

    async def test_reorder_changes_routing(self, admin, rule_set):
        assert [r.id for r in await rule_set.rules()] == [1, 2, 3]

        await admin.reorder_rule(3, RuleReorderDTO(direction="up"))

        assert [r.id for r in await rule_set.rules()] == [1, 3, 2]
