"""
Integration tests for the negotiation orchestrator.

WHAT: Full round loop with real agents, evaluator, metrics and contracts
WHY: Verify the protocol end to end: outcomes, bounds, events, limits
HOW: SimulatedClock-backed orchestrator; inputs built from sample data
"""

import asyncio
from datetime import timedelta

import pytest

from negotiation_engine.core.clock import SimulatedClock
from negotiation_engine.core.config import Settings
from negotiation_engine.core.orchestrator import NegotiationOrchestrator
from negotiation_engine.models.negotiation import SatisfactionScores
from negotiation_engine.services.event_channel import EventChannel
from negotiation_engine.utils.exceptions import (
    InvalidInputException,
    NegotiationAlreadyActiveException,
    SessionNotFoundException,
)
from tests.fixtures.sample_data import make_buyer_request, make_product


class BlockingClock(SimulatedClock):
    """Clock whose pacing delay never elapses on its own."""

    def __init__(self):
        super().__init__()
        self._never = asyncio.Event()

    async def sleep(self, seconds: float) -> None:
        await self._never.wait()


class GatedClock(SimulatedClock):
    """Clock that lets a fixed number of pacing delays through, then waits for open()."""

    def __init__(self, free_sleeps: int):
        super().__init__()
        self.free_sleeps = free_sleeps
        self._gate = asyncio.Event()

    def open(self):
        self._gate.set()

    async def sleep(self, seconds: float) -> None:
        if self.free_sleeps > 0:
            self.free_sleeps -= 1
        else:
            await self._gate.wait()
        await super().sleep(seconds)


async def wait_until(predicate, attempts=1000):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def rounds_completed(orchestrator, session_id):
    return next(
        (len(s.rounds) for s in orchestrator.active_sessions() if s.id == session_id),
        0,
    )


@pytest.mark.integration
@pytest.mark.asyncio
class TestNegotiationOutcomes:
    """Agreement, rejection and exhaustion outcomes."""

    async def test_buyer_accepts_supplier_counter(self, orchestrator, buyer_request, product):
        result = await orchestrator.run(buyer_request, product)

        assert result.success is True
        assert result.cancelled is False
        assert len(result.rounds) == 1
        assert result.reason.startswith("Agreement reached in round 1.")

        first = result.rounds[0]
        assert first.buyer_offer.price_per_unit == pytest.approx(64.0)
        assert first.buyer_offer.delivery_days == 30
        assert first.supplier_offer.price_per_unit == pytest.approx(76.0)
        assert first.supplier_offer.quantity == 125
        assert first.supplier_offer.delivery_days == 10
        assert first.status == "completed"
        assert first.convergence_score == pytest.approx(1 - (12 / 76 + 20 / 30) / 3)

        assert result.final_offer == first.supplier_offer
        movement = result.metrics.price_movement
        assert movement.final_price == pytest.approx(76.0)
        assert movement.supplier_margin == pytest.approx(18.75)
        assert movement.buyer_savings == pytest.approx(0.0)
        assert result.metrics.satisfaction_scores.buyer == pytest.approx(0.8)

        assert result.contract is not None
        assert result.contract_error is None
        assert result.contract.terms.price == pytest.approx(9500.0)
        assert result.contract.terms.delivery_date == SimulatedClock().now() + timedelta(days=10)
        assert result.contract.status == "pending_approval"

    async def test_supplier_accepts_opening_offer(self, orchestrator, product):
        request = make_buyer_request(budget_max=20000.0)

        result = await orchestrator.run(request, product)

        assert result.success is True
        assert len(result.rounds) == 1
        only = result.rounds[0]
        assert only.supplier_offer is None
        assert only.convergence_score == pytest.approx(1.0)
        assert result.final_offer.role == "buyer"
        assert result.final_offer.price_per_unit == pytest.approx(128.0)
        assert result.metrics.price_movement.final_price == pytest.approx(128.0)
        assert result.contract.terms.price == pytest.approx(16000.0)

    async def test_agreement_after_several_rounds(self, orchestrator):
        request = make_buyer_request(urgency="medium")
        product = make_product(lead_min=5, lead_max=30)

        result = await orchestrator.run(request, product, "balanced", "time_sensitive")

        assert result.success is True
        assert len(result.rounds) == 6
        assert [r.supplier_offer.delivery_days for r in result.rounds] == [19, 17, 15, 14, 13, 12]
        assert all(r.supplier_offer.price_per_unit == pytest.approx(76.0) for r in result.rounds)
        assert all(
            r.buyer_offer.price_per_unit == pytest.approx(65.8) for r in result.rounds[1:]
        )
        assert result.final_offer.delivery_days == 12
        assert result.metrics.convergence_rate == pytest.approx(1 / 6)

    async def test_max_rounds_without_agreement(self, orchestrator, product):
        request = make_buyer_request(budget_max=5000.0)

        result = await orchestrator.run(request, product)

        assert result.success is False
        assert len(result.rounds) == 8
        assert result.reason == "Negotiation failed: Maximum rounds (8) reached without agreement"
        assert result.final_offer is None
        assert result.contract is None
        assert result.metrics.price_movement.final_price == 0.0
        assert result.metrics.convergence_rate == pytest.approx(1 / 8)
        assert result.metrics.satisfaction_scores.supplier == pytest.approx(0.2)

    async def test_urgent_order_counters_inside_lead_time(self, orchestrator):
        request = make_buyer_request(urgency="urgent")
        product = make_product(lead_min=10, lead_max=15)

        result = await orchestrator.run(request, product)

        first = result.rounds[0]
        assert first.buyer_offer.delivery_days == 7
        assert first.supplier_offer is not None
        assert 10 <= first.supplier_offer.delivery_days <= 15

    async def test_price_focused_supplier_rejects(self, orchestrator):
        request = make_buyer_request(urgency="urgent")
        product = make_product(lead_min=10, lead_max=15)

        result = await orchestrator.run(request, product, supplier_strategy="price_focused")

        assert result.success is False
        assert len(result.rounds) == 1
        assert result.reason.startswith("Negotiation failed in round 1.")
        only = result.rounds[0]
        assert only.status == "failed"
        assert only.supplier_offer is None
        assert only.convergence_score == 0.0

    async def test_contract_failure_does_not_fail_negotiation(self, orchestrator, product):
        request = make_buyer_request(city="")

        result = await orchestrator.run(request, product)

        assert result.success is True
        assert result.contract is None
        assert "delivery_requirements.location.city" in result.contract_error

    async def test_custom_satisfaction_scorer(self, fast_settings, buyer_request, product):
        def scorer(success, rounds, final_offer):
            return SatisfactionScores(buyer=0.5, supplier=1.0 if success else 0.0)

        orchestrator = NegotiationOrchestrator(
            fast_settings, clock=SimulatedClock(), satisfaction_scorer=scorer
        )

        result = await orchestrator.run(buyer_request, product)

        assert result.metrics.satisfaction_scores == SatisfactionScores(buyer=0.5, supplier=1.0)


@pytest.mark.integration
@pytest.mark.asyncio
class TestProtocolBounds:
    """Offers stay inside hard constraints in every round."""

    async def test_offers_respect_constraints(self, orchestrator, product):
        request = make_buyer_request(budget_max=5000.0)

        result = await orchestrator.run(request, product)

        for negotiation_round in result.rounds:
            buyer_offer = negotiation_round.buyer_offer
            supplier_offer = negotiation_round.supplier_offer
            assert buyer_offer.price_per_unit <= 5000.0 / 100
            assert 100 <= buyer_offer.quantity <= 125
            assert supplier_offer.price_per_unit >= 80.0 * 0.95
            assert supplier_offer.quantity >= 100
            assert 5 <= supplier_offer.delivery_days <= 10
            assert buyer_offer.round_number == negotiation_round.round_number

    async def test_rounds_numbered_consecutively(self, orchestrator, product):
        request = make_buyer_request(budget_max=5000.0)

        result = await orchestrator.run(request, product)

        assert [r.round_number for r in result.rounds] == list(range(1, 9))
        assert all(r.end_time >= r.start_time for r in result.rounds)

    async def test_pacing_uses_clock(self, orchestrator, simulated_clock, product):
        request = make_buyer_request(budget_max=5000.0)

        result = await orchestrator.run(request, product)

        # no pause after the last round
        assert simulated_clock.total_slept == pytest.approx(7 * 0.5)
        assert result.total_duration == pytest.approx(3.5 / 60)


@pytest.mark.integration
@pytest.mark.asyncio
class TestEvents:
    """Event stream for a session."""

    async def test_single_round_event_order(self, orchestrator, event_channel, buyer_request, product):
        subscription = event_channel.subscribe()

        result = await orchestrator.run(buyer_request, product)

        events = subscription.drain()
        assert [e.type for e in events] == [
            "session_started",
            "agent_thinking",
            "offer_made",
            "offer_received",
            "agent_thinking",
            "counter_offer",
            "offer_received",
            "offer_accepted",
            "phase_changed",
            "phase_changed",
            "phase_changed",
            "negotiation_completed",
        ]
        assert all(e.session_id == result.session_id for e in events)
        assert [e.data["phase"] for e in events if e.type == "phase_changed"] == [
            "final_terms", "contract_review", "completed"
        ]
        offer_made = events[2]
        assert offer_made.data["offer"]["price_per_unit"] == pytest.approx(64.0)
        assert events[1].message.startswith("Seeking fair terms")

    async def test_failed_session_phases(self, orchestrator, event_channel, product):
        subscription = event_channel.subscribe()

        await orchestrator.run(make_buyer_request(budget_max=5000.0), product)

        events = subscription.drain()
        phases = [e.data["phase"] for e in events if e.type == "phase_changed"]
        assert phases == ["counter_negotiation", "failed"]
        assert events[-1].type == "negotiation_failed"
        assert events[-1].data["rounds"] == 8
        assert sum(1 for e in events if e.type == "counter_offer") == 8

    async def test_session_filter_isolates_runs(self, orchestrator, event_channel, buyer_request, product):
        subscription = event_channel.subscribe(session_id="watched")

        await asyncio.gather(
            orchestrator.run(buyer_request, product, session_id="watched"),
            orchestrator.run(make_buyer_request(budget_max=5000.0), product, session_id="other"),
        )

        events = subscription.drain()
        assert events
        assert {e.session_id for e in events} == {"watched"}

    async def test_slow_subscriber_does_not_stall_run(self, orchestrator, event_channel, product):
        slow = event_channel.subscribe(maxsize=1)

        result = await orchestrator.run(make_buyer_request(budget_max=5000.0), product)

        assert len(result.rounds) == 8
        assert slow.pending() == 1
        assert slow.dropped > 0


@pytest.mark.integration
@pytest.mark.asyncio
class TestLimitsAndCancellation:
    """Duration budget, cancellation and session bookkeeping."""

    async def test_duration_budget(self, simulated_clock, product):
        config = Settings(_env_file=None, ROUND_DELAY_SECONDS=60, MAX_DURATION_MINUTES=2.5, LOG_FILE="")
        orchestrator = NegotiationOrchestrator(config, clock=simulated_clock)

        result = await orchestrator.run(make_buyer_request(budget_max=5000.0), product)

        assert result.success is False
        assert len(result.rounds) == 3
        assert result.reason == (
            "Negotiation failed: Maximum duration (2.5 minutes) exceeded without agreement"
        )

    async def test_duration_override_per_session(self, simulated_clock, product):
        config = Settings(_env_file=None, ROUND_DELAY_SECONDS=60, LOG_FILE="")
        orchestrator = NegotiationOrchestrator(config, clock=simulated_clock)

        result = await orchestrator.run(
            make_buyer_request(budget_max=5000.0), product, max_duration_minutes=1.5
        )

        assert len(result.rounds) == 2
        assert "Maximum duration (1.5 minutes)" in result.reason

    async def test_cancel_between_rounds(self, fast_settings, product):
        orchestrator = NegotiationOrchestrator(fast_settings, clock=BlockingClock())
        task = asyncio.create_task(
            orchestrator.run(make_buyer_request(budget_max=5000.0), product, session_id="to-cancel")
        )

        await wait_until(lambda: rounds_completed(orchestrator, "to-cancel") == 1)
        orchestrator.cancel("to-cancel")
        result = await asyncio.wait_for(task, timeout=5)

        assert result.cancelled is True
        assert result.success is False
        assert len(result.rounds) == 1
        assert result.reason == "Negotiation cancelled after 1 round(s)"
        assert orchestrator.active_sessions() == []
        with pytest.raises(SessionNotFoundException):
            orchestrator.cancel("to-cancel")

    async def test_duplicate_session_id_rejected(self, fast_settings, product):
        orchestrator = NegotiationOrchestrator(fast_settings, clock=BlockingClock())
        request = make_buyer_request(budget_max=5000.0)
        task = asyncio.create_task(orchestrator.run(request, product, session_id="dup"))

        await wait_until(lambda: rounds_completed(orchestrator, "dup") == 1)
        with pytest.raises(NegotiationAlreadyActiveException):
            await orchestrator.run(request, product, session_id="dup")

        orchestrator.cancel("dup")
        result = await asyncio.wait_for(task, timeout=5)
        assert result.cancelled is True

    async def test_active_session_visible_while_running(self, fast_settings, product):
        orchestrator = NegotiationOrchestrator(fast_settings, clock=BlockingClock())
        task = asyncio.create_task(
            orchestrator.run(make_buyer_request(budget_max=5000.0), product, session_id="live")
        )

        await wait_until(lambda: rounds_completed(orchestrator, "live") == 1)
        session = orchestrator.get_session("live")

        assert session.status == "active"
        assert session.current_round == 1
        assert session.current_phase == "initial_offer"

        orchestrator.cancel("live")
        await asyncio.wait_for(task, timeout=5)
        with pytest.raises(SessionNotFoundException):
            orchestrator.get_session("live")

    async def test_concurrent_sessions_are_independent(self, orchestrator, buyer_request, product):
        results = await asyncio.gather(
            orchestrator.run(buyer_request, product, session_id="a"),
            orchestrator.run(make_buyer_request(budget_max=5000.0), product, session_id="b"),
            orchestrator.run(make_buyer_request(budget_max=20000.0), product, session_id="c"),
        )

        by_id = {result.session_id: result for result in results}
        assert by_id["a"].success is True and len(by_id["a"].rounds) == 1
        assert by_id["b"].success is False and len(by_id["b"].rounds) == 8
        assert by_id["c"].success is True and by_id["c"].final_offer.role == "buyer"
        assert orchestrator.active_sessions() == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_stalled_gap_widens_flexibility(fast_settings, product):
    # aggressive buyer moves 5% of a 48/unit gap per round: below the stall threshold
    clock = GatedClock(free_sleeps=2)
    orchestrator = NegotiationOrchestrator(fast_settings, clock=clock)
    request = make_buyer_request(budget_max=5000.0)
    task = asyncio.create_task(
        orchestrator.run(request, product, "aggressive", session_id="stalled")
    )

    await wait_until(lambda: rounds_completed(orchestrator, "stalled") == 3)
    session = orchestrator.get_session("stalled")

    assert session.buyer_agent.personality.price_flexibility == pytest.approx(0.2)
    assert session.supplier_agent.personality.price_flexibility == pytest.approx(0.25)

    clock.open()
    result = await asyncio.wait_for(task, timeout=5)

    buyer_prices = [r.buyer_offer.price_per_unit for r in result.rounds]
    assert buyer_prices[0] == pytest.approx(28.0)
    assert buyer_prices[1] == pytest.approx(30.4)
    assert buyer_prices[2] == pytest.approx(30.4)
    # 28 + (76 - 28) * 0.2 * 0.5 with the widened flexibility
    assert buyer_prices[3] == pytest.approx(32.8)
    assert len(result.rounds) == 8


@pytest.mark.integration
class TestSessionCreation:
    """Input checks before any round runs."""

    def test_invalid_inputs_raise(self, orchestrator, product):
        with pytest.raises(InvalidInputException) as exc_info:
            orchestrator.create_session(make_buyer_request(budget_max=0.0), product)

        assert exc_info.value.field_errors[0]["field"] == "buyer_request.budget.max"

    def test_unknown_strategy_rejected(self, orchestrator, buyer_request, product):
        with pytest.raises(InvalidInputException):
            orchestrator.create_session(buyer_request, product, buyer_strategy="reckless")

    @pytest.mark.parametrize("urgency,priority", [
        ("low", "low"),
        ("medium", "medium"),
        ("high", "high"),
        ("critical", "urgent"),
        ("urgent", "urgent"),
    ])
    def test_priority_follows_urgency(self, orchestrator, product, urgency, priority):
        session = orchestrator.create_session(make_buyer_request(urgency=urgency), product)
        assert session.priority == priority

    def test_session_defaults(self, orchestrator, buyer_request, product):
        session = orchestrator.create_session(buyer_request, product, session_id="fixed")

        assert session.id == "fixed"
        assert session.status == "initializing"
        assert session.current_phase == "initial_offer"
        assert session.max_duration == 30
        assert session.buyer_agent.personality.strategy == "balanced"
        assert session.supplier_agent.personality.strategy == "balanced"
        assert session.supplier_id == "supplier-1"
        assert orchestrator.active_sessions() == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_invalid_run_leaves_no_session(orchestrator, product):
    with pytest.raises(InvalidInputException):
        await orchestrator.run(make_buyer_request(qty_min=0), product, session_id="bad")

    assert orchestrator.active_sessions() == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_orchestrators_do_not_share_sessions(fast_settings, product):
    first = NegotiationOrchestrator(fast_settings, clock=BlockingClock(), events=EventChannel())
    second = NegotiationOrchestrator(fast_settings, clock=SimulatedClock(), events=EventChannel())
    task = asyncio.create_task(
        first.run(make_buyer_request(budget_max=5000.0), product, session_id="shared")
    )

    await wait_until(lambda: rounds_completed(first, "shared") == 1)
    result = await second.run(make_buyer_request(), product, session_id="shared")

    assert result.success is True
    first.cancel("shared")
    assert (await asyncio.wait_for(task, timeout=5)).cancelled is True
