"""Tests for domain state machines."""

import pytest

from sew4mi.domain import (
    EscrowStage,
    MilestoneApprovalAction,
    MilestoneApprovalStatus,
    MilestoneStage,
)
from sew4mi.domain.exceptions import InvalidStateTransitionError
from sew4mi.domain.state_machines import (
    validate_escrow_stage_transition,
    validate_milestone_transition,
)


class TestEscrowStage:
    """Tests for EscrowStage state machine."""

    def test_deposit_can_transition_to_fitting(self) -> None:
        """DEPOSIT can transition to FITTING."""
        assert EscrowStage.DEPOSIT.can_transition_to(EscrowStage.FITTING)

    def test_stages_cannot_be_skipped(self) -> None:
        """DEPOSIT cannot jump to FINAL or RELEASED."""
        assert not EscrowStage.DEPOSIT.can_transition_to(EscrowStage.FINAL)
        assert not EscrowStage.DEPOSIT.can_transition_to(EscrowStage.RELEASED)

    def test_stages_cannot_go_back(self) -> None:
        """FINAL cannot return to FITTING."""
        assert not EscrowStage.FINAL.can_transition_to(EscrowStage.FITTING)

    def test_next_stage_is_linear(self) -> None:
        """next_stage walks DEPOSIT -> FITTING -> FINAL -> RELEASED."""
        assert EscrowStage.DEPOSIT.next_stage() == EscrowStage.FITTING
        assert EscrowStage.FITTING.next_stage() == EscrowStage.FINAL
        assert EscrowStage.FINAL.next_stage() == EscrowStage.RELEASED
        assert EscrowStage.RELEASED.next_stage() is None

    def test_released_is_terminal(self) -> None:
        """RELEASED is a terminal stage."""
        assert EscrowStage.RELEASED.is_terminal()
        assert EscrowStage.RELEASED.allowed_transitions() == []
        assert not EscrowStage.FINAL.is_terminal()

    def test_only_released_holds_no_tranche(self) -> None:
        assert EscrowStage.DEPOSIT.holds_tranche()
        assert EscrowStage.FITTING.holds_tranche()
        assert EscrowStage.FINAL.holds_tranche()
        assert not EscrowStage.RELEASED.holds_tranche()

    def test_validate_raises_on_skip(self) -> None:
        """Skipping a stage raises InvalidStateTransitionError."""
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            validate_escrow_stage_transition("order-1", EscrowStage.DEPOSIT, EscrowStage.FINAL)

        assert exc_info.value.details["entity_type"] == "EscrowAccount"
        assert exc_info.value.details["allowed_transitions"] == ["FITTING"]

    def test_validate_passes_on_valid(self) -> None:
        validate_escrow_stage_transition("order-1", EscrowStage.FITTING, EscrowStage.FINAL)


class TestMilestoneApprovalStatus:
    """Tests for MilestoneApprovalStatus state machine."""

    def test_pending_can_be_approved_or_rejected(self) -> None:
        """PENDING can transition to APPROVED or REJECTED."""
        assert MilestoneApprovalStatus.PENDING.can_transition_to(MilestoneApprovalStatus.APPROVED)
        assert MilestoneApprovalStatus.PENDING.can_transition_to(MilestoneApprovalStatus.REJECTED)

    @pytest.mark.parametrize(
        "status", [MilestoneApprovalStatus.APPROVED, MilestoneApprovalStatus.REJECTED]
    )
    def test_resolved_states_are_terminal(self, status: MilestoneApprovalStatus) -> None:
        """APPROVED and REJECTED never change again."""
        assert status.is_terminal()
        assert status.allowed_transitions() == []
        assert not status.can_transition_to(MilestoneApprovalStatus.PENDING)

    def test_approved_cannot_become_rejected(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            validate_milestone_transition(
                "ms-1", MilestoneApprovalStatus.APPROVED, MilestoneApprovalStatus.REJECTED
            )

    def test_pending_is_not_terminal(self) -> None:
        assert not MilestoneApprovalStatus.PENDING.is_terminal()


class TestMilestoneApprovalAction:
    """Tests for audit actions."""

    def test_actions_map_to_statuses(self) -> None:
        """AUTO_APPROVED results in APPROVED."""
        assert MilestoneApprovalAction.APPROVED.resulting_status == MilestoneApprovalStatus.APPROVED
        assert MilestoneApprovalAction.REJECTED.resulting_status == MilestoneApprovalStatus.REJECTED
        assert (
            MilestoneApprovalAction.AUTO_APPROVED.resulting_status
            == MilestoneApprovalStatus.APPROVED
        )

    def test_auto_approved_is_not_a_customer_action(self) -> None:
        assert MilestoneApprovalAction.APPROVED.is_customer_action()
        assert MilestoneApprovalAction.REJECTED.is_customer_action()
        assert not MilestoneApprovalAction.AUTO_APPROVED.is_customer_action()


class TestMilestoneStage:
    """Tests for milestone to escrow stage mapping."""

    def test_fitting_ready_releases_fitting(self) -> None:
        assert MilestoneStage.FITTING_READY.default_escrow_stage() == EscrowStage.FITTING

    def test_ready_for_delivery_releases_final(self) -> None:
        assert MilestoneStage.READY_FOR_DELIVERY.default_escrow_stage() == EscrowStage.FINAL

    @pytest.mark.parametrize(
        "stage",
        [
            MilestoneStage.FABRIC_SELECTED,
            MilestoneStage.CUTTING_STARTED,
            MilestoneStage.INITIAL_ASSEMBLY,
            MilestoneStage.ADJUSTMENTS_COMPLETE,
            MilestoneStage.FINAL_PRESSING,
        ],
    )
    def test_other_milestones_release_nothing(self, stage: MilestoneStage) -> None:
        assert stage.default_escrow_stage() == EscrowStage.RELEASED
