"""
Round-robin assignment tests - selection, fairness, race safety, batch isolation.
"""
import uuid
import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch
from sqlalchemy import select, update, func

from nobre_hub.models.conversation import Conversation
from nobre_hub.models.interaction import Interaction
from nobre_hub.models.lead import Lead
from nobre_hub.services.errors import (
    InvalidPipelineError,
    LeadAlreadyAssignedError,
    LeadNotFoundError,
    NoEligibleAgentError,
)
from nobre_hub.services import round_robin
from nobre_hub.services.round_robin import (
    _claim_lead,
    assign_lead_round_robin,
    auto_assign_all_unassigned,
    closer_role_for,
    get_eligible_agents,
    get_round_robin_stats,
    pick_next_agent,
)

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _agent(name):
    return SimpleNamespace(id=uuid.uuid4(), name=name)


class TestPickNextAgent:
    def test_fresh_agents_first_in_order(self):
        a, b, c = _agent("A"), _agent("B"), _agent("C")
        assert pick_next_agent([a, b, c], {}) is a

    def test_least_loaded_wins(self):
        a, b, c = _agent("A"), _agent("B"), _agent("C")
        assert pick_next_agent([a, b, c], {a.id: 2, b.id: 0, c.id: 1}) is b

    def test_tie_goes_to_rotation_order(self):
        a, b, c = _agent("A"), _agent("B"), _agent("C")
        assert pick_next_agent([a, b, c], {a.id: 1, b.id: 1, c.id: 1}) is a
        assert pick_next_agent([a, b, c], {a.id: 2, b.id: 1, c.id: 1}) is b

    def test_empty_raises(self):
        with pytest.raises(NoEligibleAgentError):
            pick_next_agent([], {})


class TestCloserRole:
    def test_pipeline_mapping(self):
        assert closer_role_for("high_ticket") == "closer_ht"
        assert closer_role_for("low_ticket") == "closer_lt"

    def test_unknown_pipeline(self):
        with pytest.raises(InvalidPipelineError):
            closer_role_for("enterprise")


class TestEligibleAgents:
    async def test_filters_role_and_active(self, db, make_user):
        a = await make_user(role="closer_ht", name="A")
        await make_user(role="closer_lt", name="LT")
        await make_user(role="closer_ht", name="Inactive", is_active=False)
        await make_user(role="sdr", name="SDR")
        b = await make_user(role="closer_ht", name="B")

        agents = await get_eligible_agents(db, "high_ticket")
        assert [x.id for x in agents] == [a.id, b.id]


class TestAssignLead:
    async def test_three_fresh_leads_rotate(self, db, make_user, make_lead, mock_redis):
        a = await make_user(name="A")
        b = await make_user(name="B")
        c = await make_user(name="C")
        leads = [await make_lead() for _ in range(3)]

        assigned = [(await assign_lead_round_robin(db, lead.id)).agent_id for lead in leads]
        assert assigned == [a.id, b.id, c.id]

    async def test_continues_with_least_loaded(self, db, make_user, make_lead, mock_redis):
        a = await make_user(name="A")
        b = await make_user(name="B")
        await make_lead(assigned_to=a.id)
        await make_lead(assigned_to=a.id)
        new_lead = await make_lead()

        result = await assign_lead_round_robin(db, new_lead.id)
        assert result.agent_id == b.id
        assert result.agent_name == "B"

    async def test_closed_conversations_do_not_count(self, db, make_user, make_lead):
        a = await make_user(name="A")
        await make_user(name="B")
        old = await make_lead(assigned_to=a.id)
        await db.execute(
            update(Conversation).where(Conversation.lead_id == old.id).values(status="closed")
        )
        new_lead = await make_lead()

        result = await assign_lead_round_robin(db, new_lead.id)
        assert result.agent_id == a.id

    async def test_other_pipeline_load_ignored(self, db, make_user, make_lead):
        a = await make_user(name="A")
        await make_user(name="B")
        # A's low-ticket work does not count against high-ticket rotation
        await make_lead(pipeline="low_ticket", assigned_to=a.id)
        lead = await make_lead()

        result = await assign_lead_round_robin(db, lead.id)
        assert result.agent_id == a.id

    async def test_writes_lead_conversation_and_interaction(self, db, make_user, make_lead):
        agent = await make_user(name="A")
        lead = await make_lead()

        await assign_lead_round_robin(db, lead.id)

        stored = (await db.execute(select(Lead).where(Lead.id == lead.id))).scalar_one()
        assert stored.assigned_to == agent.id
        assert stored.assigned_at is not None

        agent_id, status = (await db.execute(
            select(Conversation.assigned_agent_id, Conversation.status)
            .where(Conversation.lead_id == lead.id)
        )).one()
        assert agent_id == agent.id
        assert status == "active"

        interaction = (await db.execute(
            select(Interaction).where(Interaction.lead_id == lead.id)
        )).scalar_one()
        assert interaction.type == "assignment"
        assert interaction.user_id == agent.id
        assert interaction.data["method"] == "round_robin"

    async def test_creates_missing_conversation(self, db, make_user, make_lead):
        agent = await make_user()
        lead = await make_lead(with_conversation=False)

        await assign_lead_round_robin(db, lead.id)

        rows = (await db.execute(
            select(Conversation.assigned_agent_id, Conversation.pipeline)
            .where(Conversation.lead_id == lead.id)
        )).all()
        assert len(rows) == 1
        assert rows[0] == (agent.id, "high_ticket")

    async def test_lead_not_found(self, db, make_user):
        await make_user()
        with pytest.raises(LeadNotFoundError):
            await assign_lead_round_robin(db, uuid.uuid4())

    async def test_already_assigned(self, db, make_user, make_lead):
        agent = await make_user()
        lead = await make_lead(assigned_to=agent.id)
        with pytest.raises(LeadAlreadyAssignedError):
            await assign_lead_round_robin(db, lead.id)

    async def test_no_eligible_agent(self, db, make_user, make_lead):
        await make_user(role="closer_lt")
        lead = await make_lead(pipeline="high_ticket")
        with pytest.raises(NoEligibleAgentError):
            await assign_lead_round_robin(db, lead.id)

        stored = (await db.execute(select(Lead.assigned_to).where(Lead.id == lead.id))).scalar_one()
        assert stored is None


class TestNoDoubleAssignment:
    async def test_claim_only_once(self, db, make_user, make_lead):
        a = await make_user(name="A")
        b = await make_user(name="B")
        lead = await make_lead()

        assert await _claim_lead(db, lead.id, a.id, BASE_TIME) is True
        assert await _claim_lead(db, lead.id, b.id, BASE_TIME) is False

        stored = (await db.execute(select(Lead.assigned_to).where(Lead.id == lead.id))).scalar_one()
        assert stored == a.id

    async def test_concurrent_winner_is_kept(self, db, make_user, make_lead):
        """Another request claims the lead after this one read it as unassigned."""
        await make_user(name="A")
        winner = await make_user(name="B")
        lead = await make_lead()

        # This session's copy of the lead still says unassigned
        await db.execute(
            update(Lead)
            .where(Lead.id == lead.id)
            .values(assigned_to=winner.id)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(LeadAlreadyAssignedError):
            await assign_lead_round_robin(db, lead.id)

        stored = (await db.execute(select(Lead.assigned_to).where(Lead.id == lead.id))).scalar_one()
        assert stored == winner.id
        count = (await db.execute(
            select(func.count()).select_from(Interaction).where(Interaction.lead_id == lead.id)
        )).scalar()
        assert count == 0


class TestAutoAssign:
    async def test_assigns_all_evenly(self, db, make_user, make_lead):
        a = await make_user(name="A")
        b = await make_user(name="B")
        for _ in range(4):
            await make_lead()

        batch = await auto_assign_all_unassigned(db, "high_ticket")
        assert (batch.total, batch.assigned, batch.skipped, batch.failed) == (4, 4, 0, 0)
        assert [r.agent_id for r in batch.results] == [a.id, b.id, a.id, b.id]

    async def test_closed_conversations_rotate_evenly(self, db, make_user, make_lead):
        a = await make_user(name="A")
        b = await make_user(name="B")
        lead_ids = [(await make_lead()).id for _ in range(4)]
        await db.execute(
            update(Conversation)
            .where(Conversation.lead_id.in_(lead_ids))
            .values(status="closed", closed_at=BASE_TIME)
        )
        await db.flush()

        batch = await auto_assign_all_unassigned(db, "high_ticket")
        assert batch.assigned == 4
        assert [r.agent_id for r in batch.results] == [a.id, b.id, a.id, b.id]

        rows = (await db.execute(
            select(Conversation.status, Conversation.closed_at)
            .where(Conversation.lead_id.in_(lead_ids))
        )).all()
        assert all(status == "active" and closed_at is None for status, closed_at in rows)

    async def test_only_target_pipeline(self, db, make_user, make_lead):
        await make_user()
        await make_lead(pipeline="high_ticket")
        other = await make_lead(pipeline="low_ticket")

        batch = await auto_assign_all_unassigned(db, "high_ticket")
        assert batch.total == 1
        stored = (await db.execute(select(Lead.assigned_to).where(Lead.id == other.id))).scalar_one()
        assert stored is None

    async def test_no_agents_skips_everything(self, db, make_lead):
        await make_lead()
        await make_lead()

        batch = await auto_assign_all_unassigned(db, "high_ticket")
        assert batch.total == 2
        assert batch.skipped == 2
        assert batch.assigned == 0
        assert all(r.status == "skipped" for r in batch.results)

    async def test_failure_is_isolated(self, db, make_user, make_lead):
        await make_user(name="A")
        first_id = (await make_lead()).id
        bad_id = (await make_lead()).id
        last_id = (await make_lead()).id

        real_attach = round_robin._attach_conversation

        async def flaky_attach(session, lead, agent_id, now):
            if lead.id == bad_id:
                raise RuntimeError("storage hiccup")
            return await real_attach(session, lead, agent_id, now)

        with patch.object(round_robin, "_attach_conversation", flaky_attach):
            batch = await auto_assign_all_unassigned(db, "high_ticket")

        assert (batch.total, batch.assigned, batch.failed) == (3, 2, 1)
        outcome = {r.lead_id: r.status for r in batch.results}
        assert outcome == {first_id: "assigned", bad_id: "failed", last_id: "assigned"}

        # The failed lead's claim was rolled back with its savepoint
        stored = (await db.execute(select(Lead.assigned_to).where(Lead.id == bad_id))).scalar_one()
        assert stored is None

    async def test_unknown_pipeline(self, db):
        with pytest.raises(InvalidPipelineError):
            await auto_assign_all_unassigned(db, "nope")


class TestStats:
    async def test_counts_open_conversations(self, db, make_user, make_lead):
        a = await make_user(name="A")
        b = await make_user(name="B")
        await make_lead(assigned_to=a.id)
        await make_lead(assigned_to=a.id)
        await make_lead(assigned_to=b.id)

        stats = await get_round_robin_stats(db, "high_ticket")
        assert [(s.name, s.count) for s in stats] == [("A", 2), ("B", 1)]

    async def test_agent_without_work_reports_zero(self, db, make_user):
        await make_user(name="A")
        stats = await get_round_robin_stats(db, "high_ticket")
        assert stats[0].count == 0
