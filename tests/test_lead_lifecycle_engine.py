"""
Tests for the Lead Lifecycle Engine

Verifies:
1. Claim is exclusive (one owner, AlreadyClaimed for everyone else)
2. Progress steps are ordered when set and independent when cleared
3. Contact logging requires notes and completes the contact step
4. Every operation is permission-gated against the stored principal
5. Rejected operations leave no partial writes
6. Version conflicts are retried and then reported
"""

import logging
import threading

import pytest

from database.lead_repository import LeadRepository
from lead_workflow import (
    AlreadyClaimedError,
    ConcurrentModificationError,
    ContactMethod,
    ErrorCode,
    InvalidContactMethodError,
    InvalidLeadDataError,
    LeadLifecycleEngine,
    LeadNotFoundError,
    LeadStage,
    MissingContactNotesError,
    NewLead,
    NotClaimedError,
    PermissionDeniedError,
    PrecedingStepIncompleteError,
    ProgressStep,
    ProgressUpdate,
)


def _snapshot(engine, lead_id):
    """Everything the engine could have written for a lead."""
    return (
        engine.get_lead(lead_id),
        engine.list_contact_logs(lead_id),
        engine.list_activity(lead_id),
    )


# =============================================================================
# INTAKE & READS
# =============================================================================

class TestIntake:

    def test_created_lead_is_unclaimed(self, make_lead):
        lead = make_lead(company="Acme", source="trade show", value=500.0)
        assert lead.claimed is False
        assert lead.claimed_by_id is None
        assert lead.stage == LeadStage.UNCLAIMED
        assert not any(lead.progress.values())
        assert lead.status == "new"

    def test_creation_recorded(self, engine, make_lead, users):
        lead = make_lead()
        activity = engine.list_activity(lead.id)
        assert [a.action for a in activity] == ["lead_created"]
        assert activity[0].user_id == users["admin"].id

    def test_create_requires_create_leads(self, engine, users):
        with pytest.raises(PermissionDeniedError):
            engine.create_lead(users["viewer"].id, NewLead(name="Nope"))
        assert engine.list_leads() == []

    def test_blank_name_rejected(self, engine, users):
        with pytest.raises(InvalidLeadDataError) as exc_info:
            engine.create_lead(users["agent"].id, NewLead(name="   "))
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        assert exc_info.value.details["field"] == "name"
        assert engine.list_leads() == []

    def test_get_missing_lead(self, engine):
        with pytest.raises(LeadNotFoundError) as exc_info:
            engine.get_lead(404)
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    def test_unclaimed_queue(self, engine, make_lead, users):
        first = make_lead("First")
        second = make_lead("Second")
        engine.claim_lead(first.id, users["agent"].id)

        queue = engine.list_unclaimed_leads()
        assert [lead.id for lead in queue] == [second.id]
        assert len(engine.list_leads()) == 2

    def test_my_leads(self, engine, make_lead, users):
        agent = users["agent"].id
        first = make_lead("First")
        second = make_lead("Second")
        theirs = make_lead("Theirs")
        make_lead("Nobody's")
        engine.claim_lead(first.id, agent)
        engine.claim_lead(second.id, agent)
        engine.claim_lead(theirs.id, users["other_agent"].id)

        assert [lead.id for lead in engine.list_my_leads(agent)] == [second.id, first.id]
        assert [lead.id for lead in engine.list_my_leads(users["other_agent"].id)] == [theirs.id]
        assert engine.list_my_leads(users["manager"].id) == []

    def test_my_leads_requires_view_leads(self, engine, users):
        with pytest.raises(PermissionDeniedError):
            engine.list_my_leads(users["designer"].id)
        with pytest.raises(PermissionDeniedError):
            engine.list_my_leads(9999)

    def test_mutation_logs_carry_lead_context(self, engine, make_lead, users, caplog):
        lead = make_lead()
        with caplog.at_level(logging.INFO, logger="lead_workflow.engine"):
            engine.claim_lead(lead.id, users["agent"].id)

        claimed = [r for r in caplog.records if "claimed by user" in r.getMessage()]
        assert len(claimed) == 1
        assert claimed[0].extra_data == {"lead_id": lead.id, "actor_id": users["agent"].id}


# =============================================================================
# CLAIM
# =============================================================================

class TestClaim:

    def test_claim_sets_owner(self, engine, make_lead, users):
        lead = make_lead()
        result = engine.claim_lead(lead.id, users["agent"].id)

        assert result.lead.claimed is True
        assert result.lead.claimed_by_id == users["agent"].id
        assert result.lead.claimed_at is not None
        assert result.lead.stage == LeadStage.CLAIMED
        assert result.next_step == "create_order"

    def test_second_claim_fails_and_keeps_owner(self, engine, make_lead, users):
        lead = make_lead()
        engine.claim_lead(lead.id, users["agent"].id)

        with pytest.raises(AlreadyClaimedError) as exc_info:
            engine.claim_lead(lead.id, users["other_agent"].id)

        assert exc_info.value.claimed_by_id == users["agent"].id
        assert engine.get_lead(lead.id).claimed_by_id == users["agent"].id

    def test_reclaim_by_owner_fails(self, engine, claimed_lead, users):
        with pytest.raises(AlreadyClaimedError):
            engine.claim_lead(claimed_lead.id, users["agent"].id)

    def test_claim_missing_lead(self, engine, users):
        with pytest.raises(LeadNotFoundError):
            engine.claim_lead(999, users["agent"].id)

    @pytest.mark.parametrize("user", ["viewer", "designer", "restricted_agent"])
    def test_claim_requires_edit_leads(self, engine, make_lead, users, user):
        lead = make_lead()
        with pytest.raises(PermissionDeniedError):
            engine.claim_lead(lead.id, users[user].id)
        assert engine.get_lead(lead.id).claimed is False

    def test_custom_override_grants_claim(self, engine, make_lead, users):
        lead = make_lead()
        result = engine.claim_lead(lead.id, users["custom"].id)
        assert result.lead.claimed_by_id == users["custom"].id

    def test_admin_can_claim(self, engine, make_lead, users):
        lead = make_lead()
        assert engine.claim_lead(lead.id, users["admin"].id).lead.claimed

    def test_unknown_actor_forbidden(self, engine, make_lead):
        lead = make_lead()
        with pytest.raises(PermissionDeniedError):
            engine.claim_lead(lead.id, 4242)

    def test_claim_notes_recorded(self, engine, make_lead, users):
        lead = make_lead()
        engine.claim_lead(lead.id, users["agent"].id, notes="  Called from booth  ")
        activity = engine.list_activity(lead.id)
        assert activity[-1].action == "lead_claimed"
        assert activity[-1].details == {"notes": "Called from booth"}

    def test_next_step_configurable(self, store, users, make_lead):
        engine = LeadLifecycleEngine(store, post_claim_next_step="review_lead")
        lead = make_lead()
        assert engine.claim_lead(lead.id, users["agent"].id).next_step == "review_lead"

    def test_concurrent_claims_have_one_winner(self, engine, make_lead, users):
        lead = make_lead()
        contenders = [users["agent"].id, users["other_agent"].id, users["manager"].id, users["admin"].id]
        barrier = threading.Barrier(len(contenders))
        winners, losers, errors = [], [], []

        def attempt(actor_id):
            barrier.wait()
            try:
                engine.claim_lead(lead.id, actor_id)
                winners.append(actor_id)
            except AlreadyClaimedError:
                losers.append(actor_id)
            except Exception as e:  # pragma: no cover - surfaced below
                errors.append(e)

        threads = [threading.Thread(target=attempt, args=(actor,)) for actor in contenders]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(winners) == 1
        assert len(losers) == len(contenders) - 1
        final = engine.get_lead(lead.id)
        assert final.claimed_by_id == winners[0]
        assert [a.action for a in engine.list_activity(lead.id)].count("lead_claimed") == 1


# =============================================================================
# PROGRESS
# =============================================================================

class TestProgress:

    def test_unclaimed_lead_rejected(self, engine, make_lead, users):
        lead = make_lead()
        before = _snapshot(engine, lead.id)

        with pytest.raises(NotClaimedError):
            engine.set_lead_progress(lead.id, users["agent"].id, ProgressUpdate(contact_complete=True))

        assert _snapshot(engine, lead.id) == before

    def test_items_before_contact_rejected(self, engine, claimed_lead, users):
        before = _snapshot(engine, claimed_lead.id)

        with pytest.raises(PrecedingStepIncompleteError) as exc_info:
            engine.set_lead_progress(
                claimed_lead.id, users["agent"].id, ProgressUpdate(items_confirmed=True)
            )

        assert exc_info.value.missing == [ProgressStep.CONTACT_COMPLETE]
        assert _snapshot(engine, claimed_lead.id) == before

    def test_submit_needs_both_earlier_steps(self, engine, claimed_lead, users):
        agent = users["agent"].id
        engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(contact_complete=True))

        with pytest.raises(PrecedingStepIncompleteError) as exc_info:
            engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(submitted_to_design=True))
        assert exc_info.value.missing == [ProgressStep.ITEMS_CONFIRMED]

    def test_steps_in_order(self, engine, claimed_lead, users):
        agent = users["agent"].id
        lead = engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(contact_complete=True))
        assert lead.stage == LeadStage.CONTACT_COMPLETE
        lead = engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(items_confirmed=True))
        assert lead.stage == LeadStage.ITEMS_CONFIRMED
        lead = engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(submitted_to_design=True))
        assert lead.stage == LeadStage.SUBMITTED_TO_DESIGN
        assert lead.stage.is_terminal

    def test_all_steps_in_one_update(self, engine, claimed_lead, users):
        """Earlier steps set in the same request count as complete."""
        lead = engine.set_lead_progress(
            claimed_lead.id,
            users["agent"].id,
            ProgressUpdate(contact_complete=True, items_confirmed=True, submitted_to_design=True),
        )
        assert lead.contact_complete and lead.items_confirmed and lead.submitted_to_design

    def test_clearing_does_not_cascade(self, engine, claimed_lead, users):
        agent = users["agent"].id
        engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(contact_complete=True))
        engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(items_confirmed=True))

        lead = engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(contact_complete=False))

        assert lead.contact_complete is False
        assert lead.items_confirmed is True
        assert lead.stage == LeadStage.CLAIMED

    def test_later_step_blocked_after_earlier_cleared(self, engine, claimed_lead, users):
        agent = users["agent"].id
        engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(contact_complete=True))
        engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(items_confirmed=True))
        engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(contact_complete=False))

        with pytest.raises(PrecedingStepIncompleteError):
            engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(submitted_to_design=True))

    def test_clear_with_set_in_same_request_checked(self, engine, claimed_lead, users):
        agent = users["agent"].id
        engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(contact_complete=True))
        with pytest.raises(PrecedingStepIncompleteError):
            engine.set_lead_progress(
                claimed_lead.id, agent, ProgressUpdate(contact_complete=False, items_confirmed=True)
            )
        assert engine.get_lead(claimed_lead.id).contact_complete is True

    def test_only_provided_fields_change(self, engine, claimed_lead, users):
        agent = users["agent"].id
        engine.set_lead_progress(
            claimed_lead.id, agent, ProgressUpdate(contact_complete=True, items_confirmed=True)
        )
        lead = engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(submitted_to_design=False))
        assert lead.contact_complete is True
        assert lead.items_confirmed is True

    def test_empty_update_is_noop(self, engine, claimed_lead, users):
        before = _snapshot(engine, claimed_lead.id)
        lead = engine.set_lead_progress(claimed_lead.id, users["agent"].id, ProgressUpdate())
        assert lead == before[0]
        assert _snapshot(engine, claimed_lead.id) == before

    def test_unchanged_values_not_written(self, engine, claimed_lead, users):
        before = engine.get_lead(claimed_lead.id)
        lead = engine.set_lead_progress(
            claimed_lead.id, users["agent"].id, ProgressUpdate(contact_complete=False)
        )
        assert lead.version == before.version

    def test_progress_recorded(self, engine, claimed_lead, users):
        engine.set_lead_progress(claimed_lead.id, users["agent"].id, ProgressUpdate(contact_complete=True))
        activity = engine.list_activity(claimed_lead.id)
        assert activity[-1].action == "progress_updated"
        assert activity[-1].details == {"contact_complete": True}

    def test_any_editor_may_progress(self, engine, claimed_lead, users):
        """Progress is gated on permission, not ownership."""
        lead = engine.set_lead_progress(
            claimed_lead.id, users["other_agent"].id, ProgressUpdate(contact_complete=True)
        )
        assert lead.contact_complete is True

    @pytest.mark.parametrize("user", ["viewer", "designer", "restricted_agent"])
    def test_requires_edit_leads(self, engine, claimed_lead, users, user):
        before = _snapshot(engine, claimed_lead.id)
        with pytest.raises(PermissionDeniedError):
            engine.set_lead_progress(claimed_lead.id, users[user].id, ProgressUpdate(contact_complete=True))
        assert _snapshot(engine, claimed_lead.id) == before

    def test_missing_lead(self, engine, users):
        with pytest.raises(LeadNotFoundError):
            engine.set_lead_progress(999, users["agent"].id, ProgressUpdate(contact_complete=True))


class TestConflictRetry:
    """Version conflicts on progress writes."""

    def test_retry_after_conflict(self, engine, claimed_lead, users, monkeypatch):
        original = LeadRepository.update_progress
        calls = {"count": 0}

        def flaky(self, lead_id, changes, expected_version):
            calls["count"] += 1
            if calls["count"] == 1:
                return False
            return original(self, lead_id, changes, expected_version)

        monkeypatch.setattr(LeadRepository, "update_progress", flaky)
        lead = engine.set_lead_progress(
            claimed_lead.id, users["agent"].id, ProgressUpdate(contact_complete=True)
        )

        assert calls["count"] == 2
        assert lead.contact_complete is True

    def test_gives_up_after_max_attempts(self, store, claimed_lead, users, monkeypatch):
        engine = LeadLifecycleEngine(store, max_conflict_retries=2)
        calls = {"count": 0}

        def always_conflict(self, lead_id, changes, expected_version):
            calls["count"] += 1
            return False

        monkeypatch.setattr(LeadRepository, "update_progress", always_conflict)
        with pytest.raises(ConcurrentModificationError) as exc_info:
            engine.set_lead_progress(claimed_lead.id, users["agent"].id, ProgressUpdate(contact_complete=True))

        assert calls["count"] == 2
        assert exc_info.value.attempts == 2
        assert exc_info.value.retryable
        assert engine.get_lead(claimed_lead.id).contact_complete is False

    def test_retry_revalidates_against_fresh_state(self, engine, claimed_lead, users, monkeypatch):
        """A concurrent writer that clears contact makes the retry fail ordering."""
        agent = users["agent"].id
        engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(contact_complete=True))
        original = LeadRepository.update_progress
        state = {"interfered": False}

        def interfering(self, lead_id, changes, expected_version):
            if not state["interfered"]:
                state["interfered"] = True
                # Someone else clears contact_complete between our read and write
                with engine.store.transaction() as other:
                    current = other.get_lead(lead_id)
                    original(other, lead_id, {ProgressStep.CONTACT_COMPLETE: False}, current.version)
                return False
            return original(self, lead_id, changes, expected_version)

        monkeypatch.setattr(LeadRepository, "update_progress", interfering)
        with pytest.raises(PrecedingStepIncompleteError):
            engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(items_confirmed=True))

        lead = engine.get_lead(claimed_lead.id)
        assert lead.contact_complete is False
        assert lead.items_confirmed is False

    def test_invalid_retry_setting(self, store):
        with pytest.raises(ValueError):
            LeadLifecycleEngine(store, max_conflict_retries=0)


# =============================================================================
# CONTACT LOGS
# =============================================================================

class TestContactLogs:

    def test_first_log_completes_contact(self, engine, claimed_lead, users):
        result = engine.log_contact(claimed_lead.id, users["agent"].id, "phone", "Discussed sizing")

        assert result.contact_completed is True
        assert result.lead.contact_complete is True
        assert result.lead.stage == LeadStage.CONTACT_COMPLETE
        assert result.contact_log.contact_method == ContactMethod.PHONE
        assert result.contact_log.notes == "Discussed sizing"
        assert result.contact_log.user_id == users["agent"].id

        logs = engine.list_contact_logs(claimed_lead.id)
        assert len(logs) == 1

    def test_later_logs_do_not_flip_again(self, engine, claimed_lead, users):
        agent = users["agent"].id
        engine.log_contact(claimed_lead.id, agent, "email", "Sent catalog")
        result = engine.log_contact(claimed_lead.id, agent, "video", "Walked through mockups")

        assert result.contact_completed is False
        assert result.lead.contact_complete is True
        assert [log.contact_method for log in engine.list_contact_logs(claimed_lead.id)] == [
            ContactMethod.EMAIL,
            ContactMethod.VIDEO,
        ]

    def test_log_after_contact_cleared_sets_it_again(self, engine, claimed_lead, users):
        agent = users["agent"].id
        engine.log_contact(claimed_lead.id, agent, "phone", "First call")
        engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(contact_complete=False))

        result = engine.log_contact(claimed_lead.id, agent, "phone", "Second call")
        assert result.contact_completed is True
        assert result.lead.contact_complete is True

    @pytest.mark.parametrize("notes", [None, "", "   ", "\n\t"])
    def test_blank_notes_rejected(self, engine, claimed_lead, users, notes):
        before = _snapshot(engine, claimed_lead.id)
        with pytest.raises(MissingContactNotesError):
            engine.log_contact(claimed_lead.id, users["agent"].id, "phone", notes)
        assert _snapshot(engine, claimed_lead.id) == before

    @pytest.mark.parametrize("method", ["fax", "", None])
    def test_unknown_method_rejected(self, engine, claimed_lead, users, method):
        before = _snapshot(engine, claimed_lead.id)
        with pytest.raises(InvalidContactMethodError) as exc_info:
            engine.log_contact(claimed_lead.id, users["agent"].id, method, "Notes")
        assert "in_person" in exc_info.value.details["allowed"]
        assert _snapshot(engine, claimed_lead.id) == before

    def test_display_label_method_accepted(self, engine, claimed_lead, users):
        result = engine.log_contact(claimed_lead.id, users["agent"].id, "In Person", "Met at the store")
        assert result.contact_log.contact_method == ContactMethod.IN_PERSON

    def test_unclaimed_lead_rejected(self, engine, make_lead, users):
        lead = make_lead()
        before = _snapshot(engine, lead.id)
        with pytest.raises(NotClaimedError):
            engine.log_contact(lead.id, users["agent"].id, "phone", "Discussed sizing")
        assert _snapshot(engine, lead.id) == before

    def test_requires_edit_leads(self, engine, claimed_lead, users):
        with pytest.raises(PermissionDeniedError):
            engine.log_contact(claimed_lead.id, users["viewer"].id, "phone", "Hi")
        assert engine.list_contact_logs(claimed_lead.id) == []

    def test_missing_lead(self, engine, users):
        with pytest.raises(LeadNotFoundError):
            engine.log_contact(999, users["agent"].id, "phone", "Hi")
        with pytest.raises(LeadNotFoundError):
            engine.list_contact_logs(999)

    def test_contact_recorded(self, engine, claimed_lead, users):
        result = engine.log_contact(claimed_lead.id, users["agent"].id, "text", "Sent quote")
        activity = engine.list_activity(claimed_lead.id)
        assert activity[-1].action == "contact_logged"
        assert activity[-1].details == {
            "contact_log_id": result.contact_log.id,
            "contact_method": "text",
            "contact_completed": True,
        }

    def test_contact_log_and_progress_do_not_clobber(self, engine, claimed_lead, users):
        """The contact flip bumps the version, so a stale progress write retries."""
        agent = users["agent"].id
        engine.log_contact(claimed_lead.id, agent, "phone", "Call")
        lead = engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(items_confirmed=True))
        assert lead.contact_complete is True
        assert lead.items_confirmed is True


# =============================================================================
# INVARIANTS & AVAILABLE ACTIONS
# =============================================================================

class TestInvariants:

    def test_claimed_matches_owner_throughout(self, engine, make_lead, users):
        agent = users["agent"].id
        lead = make_lead()
        seen = [engine.get_lead(lead.id)]
        seen.append(engine.claim_lead(lead.id, agent).lead)
        seen.append(engine.log_contact(lead.id, agent, "phone", "Call").lead)
        seen.append(engine.set_lead_progress(lead.id, agent, ProgressUpdate(items_confirmed=True)))
        seen.append(engine.set_lead_progress(lead.id, agent, ProgressUpdate(contact_complete=False)))

        for snapshot in seen:
            assert snapshot.claimed == (snapshot.claimed_by_id is not None)

    def test_version_only_grows(self, engine, make_lead, users):
        agent = users["agent"].id
        lead = make_lead()
        versions = [lead.version]
        versions.append(engine.claim_lead(lead.id, agent).lead.version)
        versions.append(engine.log_contact(lead.id, agent, "phone", "Call").lead.version)
        versions.append(engine.set_lead_progress(lead.id, agent, ProgressUpdate(items_confirmed=True)).version)
        assert versions == sorted(set(versions))


class TestAvailableActions:

    def test_unclaimed(self, engine, make_lead, users):
        lead = make_lead()
        actions = engine.available_actions(lead.id, users["agent"].id)
        assert actions["claim"] is True
        assert actions["log_contact"] is False
        assert not any(v for k, v in actions.items() if k.startswith(("set_", "clear_")))

    def test_claimed_fresh(self, engine, claimed_lead, users):
        actions = engine.available_actions(claimed_lead.id, users["agent"].id)
        assert actions["claim"] is False
        assert actions["log_contact"] is True
        assert actions["set_contact_complete"] is True
        assert actions["set_items_confirmed"] is False
        assert actions["set_submitted_to_design"] is False
        assert actions["clear_contact_complete"] is False

    def test_after_contact(self, engine, claimed_lead, users):
        agent = users["agent"].id
        engine.log_contact(claimed_lead.id, agent, "phone", "Call")
        actions = engine.available_actions(claimed_lead.id, agent)
        assert actions["set_contact_complete"] is False
        assert actions["clear_contact_complete"] is True
        assert actions["set_items_confirmed"] is True
        assert actions["set_submitted_to_design"] is False

    def test_viewer_gets_nothing(self, engine, claimed_lead, users):
        actions = engine.available_actions(claimed_lead.id, users["viewer"].id)
        assert not any(actions.values())

    def test_unknown_actor_gets_nothing(self, engine, make_lead):
        lead = make_lead()
        assert not any(engine.available_actions(lead.id, 4242).values())

    def test_missing_lead(self, engine, users):
        with pytest.raises(LeadNotFoundError):
            engine.available_actions(999, users["agent"].id)

    def test_actions_agree_with_engine(self, engine, claimed_lead, users):
        """Every advertised set_* action actually succeeds."""
        agent = users["agent"].id
        engine.log_contact(claimed_lead.id, agent, "phone", "Call")
        actions = engine.available_actions(claimed_lead.id, agent)
        for step in ProgressStep:
            if actions[f"set_{step.value}"]:
                engine.set_lead_progress(claimed_lead.id, agent, ProgressUpdate(**{step.value: True}))
