"""
Round orchestrator for bilateral negotiations.

WHAT: Drive one buyer/supplier negotiation from first offer to result
WHY: The only component that owns session state and the round protocol
HOW: Strictly sequential rounds per session; sessions run concurrently as
     independent coroutines sharing only the event channel

Round protocol (r = 1..MAX_ROUNDS):
1. Buyer offers (initial on r=1, otherwise a counter to the last supplier offer)
2. Supplier evaluates: accept ends successfully, reject ends failed
3. Supplier counters, merging the evaluator's suggestion under its own clamps
4. Buyer evaluates: accept ends successfully, reject ends failed, counter loops
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .clock import Clock, SystemClock
from .config import Settings, settings as default_settings
from ..agents.agent import DecisionContext, NegotiationAgent
from ..agents.personality import (
    create_buyer_constraints,
    create_buyer_personality,
    create_supplier_constraints,
    create_supplier_personality,
)
from ..models.b2b import BuyerRequest, B2BProduct
from ..models.negotiation import (
    STRATEGIES,
    AgentProfile,
    NegotiationEvent,
    NegotiationResult,
    NegotiationRound,
    NegotiationSession,
    Offer,
)
from ..services.contract_assembler import assemble_contract
from ..services.event_channel import EventChannel
from ..services.metrics import (
    SatisfactionScorer,
    calculate_metrics,
    convergence_score,
    fixed_satisfaction_scorer,
)
from ..services.validation import validate_negotiation_inputs
from ..utils.exceptions import (
    ContractAssemblyException,
    InvalidInputException,
    NegotiationAlreadyActiveException,
    SessionNotFoundException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

URGENCY_PRIORITY = {
    "low": "low",
    "medium": "medium",
    "high": "high",
    "critical": "urgent",
    "urgent": "urgent",
}
BUYER_ALTERNATIVE_OPTIONS = 2
SUPPLIER_ALTERNATIVE_OPTIONS = 1


@dataclass
class _ActiveRun:
    """In-flight state for one session; owned by its run() coroutine."""
    session: NegotiationSession
    buyer_request: BuyerRequest
    product: B2BProduct
    buyer: NegotiationAgent
    supplier: NegotiationAgent
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)


@dataclass
class _Outcome:
    success: bool
    reason: str
    final_offer: Optional[Offer] = None
    cancelled: bool = False


class NegotiationOrchestrator:
    """
    Run negotiations and keep track of in-flight sessions.

    WHAT: Explicit, constructible engine with its own session store
    WHY: No process-wide mutable state; each orchestrator is independent
    HOW: run() creates a session, loops rounds, then computes metrics and
         the contract; the session leaves the store when run() returns
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        clock: Optional[Clock] = None,
        events: Optional[EventChannel] = None,
        satisfaction_scorer: Optional[SatisfactionScorer] = None
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Round limits, pacing and contract settings
            clock: Time source and pacing delay (defaults to SystemClock)
            events: Event channel to publish to (a new one if omitted)
            satisfaction_scorer: Scorer for result metrics
        """
        self.settings = settings or default_settings
        self.clock = clock or SystemClock()
        self.events = events or EventChannel(default_maxsize=self.settings.EVENT_QUEUE_MAXSIZE)
        self.satisfaction_scorer = satisfaction_scorer or fixed_satisfaction_scorer(
            self.settings.SUCCESS_SATISFACTION,
            self.settings.FAILURE_SATISFACTION,
        )
        self._runs: Dict[str, _ActiveRun] = {}

    # ------------------------------------------------------------------
    # Session store
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> NegotiationSession:
        """
        Look up an in-flight session.

        Raises:
            SessionNotFoundException: If no run with this id is active
        """
        run = self._runs.get(session_id)
        if run is None:
            raise SessionNotFoundException(session_id)
        return run.session

    def active_sessions(self) -> List[NegotiationSession]:
        return [run.session for run in self._runs.values()]

    def cancel(self, session_id: str):
        """
        Ask a running session to stop between rounds.

        The run returns a cancelled result carrying the rounds completed
        so far.

        Raises:
            SessionNotFoundException: If no run with this id is active
        """
        run = self._runs.get(session_id)
        if run is None:
            raise SessionNotFoundException(session_id)
        logger.info(f"Cancellation requested for session {session_id}")
        run.cancel_event.set()

    # ------------------------------------------------------------------
    # Session creation
    # ------------------------------------------------------------------

    def create_session(
        self,
        buyer_request: BuyerRequest,
        product: B2BProduct,
        buyer_strategy: str = "balanced",
        supplier_strategy: Optional[str] = None,
        *,
        session_id: Optional[str] = None,
        max_duration_minutes: Optional[float] = None
    ) -> NegotiationSession:
        """
        Build a session with agent profiles derived from the inputs.

        Raises:
            InvalidInputException: If the inputs or strategies are invalid
        """
        validate_negotiation_inputs(buyer_request, product)
        for name, strategy in (("buyer_strategy", buyer_strategy), ("supplier_strategy", supplier_strategy)):
            if strategy is not None and strategy not in STRATEGIES:
                raise InvalidInputException(
                    f"Unknown strategy: {strategy}",
                    field_errors=[{"field": name, "message": f"Must be one of {', '.join(STRATEGIES)}"}],
                )

        now = self.clock.now()
        session_kwargs = {"id": session_id} if session_id else {}
        return NegotiationSession(
            **session_kwargs,
            buyer_request_id=buyer_request.id,
            product_id=product.id,
            supplier_id=product.supplier_id,
            buyer_agent=AgentProfile(
                role="buyer",
                personality=create_buyer_personality(buyer_strategy),
                constraints=create_buyer_constraints(buyer_request),
            ),
            supplier_agent=AgentProfile(
                role="supplier",
                personality=create_supplier_personality(product, supplier_strategy),
                constraints=create_supplier_constraints(product),
            ),
            status="initializing",
            current_phase="initial_offer",
            start_time=now,
            last_activity=now,
            max_duration=max_duration_minutes or self.settings.MAX_DURATION_MINUTES,
            priority=URGENCY_PRIORITY.get(buyer_request.urgency, "medium"),
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(
        self,
        buyer_request: BuyerRequest,
        product: B2BProduct,
        buyer_strategy: str = "balanced",
        supplier_strategy: Optional[str] = None,
        *,
        session_id: Optional[str] = None,
        max_duration_minutes: Optional[float] = None
    ) -> NegotiationResult:
        """
        Run one negotiation to completion.

        Args:
            buyer_request: Buyer's procurement request
            product: Supplier's product listing
            buyer_strategy: Buyer strategy name
            supplier_strategy: Supplier strategy, derived from the product if None
            session_id: Optional caller-chosen session id
            max_duration_minutes: Override for the session's time budget

        Returns:
            NegotiationResult; failures, max rounds, max duration and
            cancellation are all results, not exceptions

        Raises:
            InvalidInputException: If inputs cannot seed a negotiation
            NegotiationAlreadyActiveException: If session_id is already running
        """
        if session_id and session_id in self._runs:
            raise NegotiationAlreadyActiveException(session_id)

        session = self.create_session(
            buyer_request,
            product,
            buyer_strategy,
            supplier_strategy,
            session_id=session_id,
            max_duration_minutes=max_duration_minutes,
        )
        if session.id in self._runs:
            raise NegotiationAlreadyActiveException(session.id)

        run = _ActiveRun(
            session=session,
            buyer_request=buyer_request,
            product=product,
            buyer=NegotiationAgent(session.buyer_agent, buyer_request=buyer_request),
            supplier=NegotiationAgent(session.supplier_agent, product=product),
        )
        self._runs[session.id] = run

        try:
            session.status = "active"
            logger.info(
                f"Negotiation {session.id} started: request {buyer_request.id} vs product {product.id} "
                f"(buyer={session.buyer_agent.personality.strategy}, "
                f"supplier={session.supplier_agent.personality.strategy})"
            )
            self._emit(
                session,
                "session_started",
                f"Negotiation started: {buyer_request.title or buyer_request.id} with {product.name or product.id}",
                buyer_strategy=session.buyer_agent.personality.strategy,
                supplier_strategy=session.supplier_agent.personality.strategy,
            )

            outcome = await self._run_rounds(run)
            return self._finish(run, outcome)
        finally:
            self._runs.pop(session.id, None)

    async def _run_rounds(self, run: _ActiveRun) -> _Outcome:
        session = run.session
        max_rounds = self.settings.MAX_ROUNDS
        last_supplier_offer: Optional[Offer] = None

        for round_number in range(1, max_rounds + 1):
            if run.cancel_event.is_set():
                return self._cancelled(session)

            elapsed = self._elapsed_minutes(session)
            if round_number > 1 and elapsed >= session.max_duration:
                return _Outcome(
                    success=False,
                    reason=(
                        f"Negotiation failed: Maximum duration ({session.max_duration:g} minutes) "
                        f"exceeded without agreement"
                    ),
                )

            self._set_phase(session, "initial_offer" if round_number == 1 else "counter_negotiation")
            session.current_round = round_number
            round_start = self.clock.now()
            time_remaining = session.max_duration - (
                round_number * self.settings.SIMULATED_MINUTES_PER_ROUND if round_number > 1 else 0
            )

            # 1. Buyer offers
            buyer_context = DecisionContext(
                session_id=session.id,
                round_number=round_number,
                current_offer=last_supplier_offer,
                previous_offers=[r.supplier_offer for r in session.rounds if r.supplier_offer],
                time_remaining=time_remaining,
                alternative_options=(
                    BUYER_ALTERNATIVE_OPTIONS if round_number == 1
                    else max(0, BUYER_ALTERNATIVE_OPTIONS - round_number)
                ),
                timestamp=round_start,
            )
            if last_supplier_offer is None:
                buyer_offer = run.buyer.generate_initial_offer(buyer_context)
            else:
                buyer_offer = run.buyer.generate_counter_offer(last_supplier_offer, buyer_context)

            self._emit_thinking(session, run.buyer, buyer_offer, buyer_context)
            self._emit(
                session, "offer_made",
                f"Round {round_number}: buyer offers {buyer_offer.price_per_unit:.2f} {buyer_offer.currency}/unit",
                agent_id=run.buyer.id, offer=buyer_offer,
            )
            self._emit(
                session, "offer_received",
                "Supplier received buyer offer", agent_id=run.supplier.id, offer_id=buyer_offer.id,
            )

            # 2. Supplier evaluates
            supplier_context = DecisionContext(
                session_id=session.id,
                round_number=round_number,
                current_offer=buyer_offer,
                previous_offers=[r.buyer_offer for r in session.rounds if r.buyer_offer],
                time_remaining=time_remaining,
                alternative_options=SUPPLIER_ALTERNATIVE_OPTIONS,
                timestamp=round_start,
            )
            supplier_decision = run.supplier.evaluate_offer(buyer_offer, supplier_context)
            logger.debug(
                f"Session {session.id} round {round_number}: supplier {supplier_decision.action} "
                f"(score {supplier_decision.overall_score:.3f})"
            )

            if supplier_decision.action == "accept":
                self._record_round(session, round_number, round_start, buyer_offer, None, "completed", 1.0)
                self._emit(
                    session, "offer_accepted", supplier_decision.reasoning,
                    agent_id=run.supplier.id, offer_id=buyer_offer.id, decision=supplier_decision,
                )
                return _Outcome(
                    success=True,
                    reason=f"Agreement reached in round {round_number}. {supplier_decision.reasoning}",
                    final_offer=buyer_offer,
                )

            if supplier_decision.action == "reject":
                self._record_round(session, round_number, round_start, buyer_offer, None, "failed", 0.0)
                self._emit(
                    session, "offer_rejected", supplier_decision.reasoning,
                    agent_id=run.supplier.id, offer_id=buyer_offer.id, decision=supplier_decision,
                )
                return _Outcome(
                    success=False,
                    reason=f"Negotiation failed in round {round_number}. {supplier_decision.reasoning}",
                )

            # 3. Supplier counters
            suggestion = supplier_decision.suggested_offer
            supplier_offer = run.supplier.generate_counter_offer(
                buyer_offer,
                supplier_context,
                suggestion=suggestion,
                reasoning=supplier_decision.reasoning if suggestion else None,
            )
            last_supplier_offer = supplier_offer

            self._emit_thinking(session, run.supplier, supplier_offer, supplier_context)
            self._emit(
                session, "counter_offer",
                f"Round {round_number}: supplier counters at "
                f"{supplier_offer.price_per_unit:.2f} {supplier_offer.currency}/unit",
                agent_id=run.supplier.id, offer=supplier_offer, decision=supplier_decision,
            )
            self._emit(
                session, "offer_received",
                "Buyer received supplier counter-offer", agent_id=run.buyer.id, offer_id=supplier_offer.id,
            )

            # 4. Buyer evaluates
            buyer_decision = run.buyer.evaluate_offer(supplier_offer, buyer_context)
            logger.debug(
                f"Session {session.id} round {round_number}: buyer {buyer_decision.action} "
                f"(score {buyer_decision.overall_score:.3f})"
            )
            self._record_round(
                session, round_number, round_start, buyer_offer, supplier_offer,
                "completed", convergence_score(buyer_offer, supplier_offer),
            )

            if buyer_decision.action == "accept":
                self._emit(
                    session, "offer_accepted", buyer_decision.reasoning,
                    agent_id=run.buyer.id, offer_id=supplier_offer.id, decision=buyer_decision,
                )
                return _Outcome(
                    success=True,
                    reason=f"Agreement reached in round {round_number}. {buyer_decision.reasoning}",
                    final_offer=supplier_offer,
                )

            if buyer_decision.action == "reject":
                self._emit(
                    session, "offer_rejected", buyer_decision.reasoning,
                    agent_id=run.buyer.id, offer_id=supplier_offer.id, decision=buyer_decision,
                )
                return _Outcome(
                    success=False,
                    reason=f"Negotiation failed in round {round_number}. {buyer_decision.reasoning}",
                )

            self._review_strategies(run)

            if round_number < max_rounds and await self._pace(run):
                return self._cancelled(session)

        return _Outcome(
            success=False,
            reason=f"Negotiation failed: Maximum rounds ({max_rounds}) reached without agreement",
        )

    def _finish(self, run: _ActiveRun, outcome: _Outcome) -> NegotiationResult:
        session = run.session
        contract = None
        contract_error = None

        if outcome.success:
            session.final_offer = outcome.final_offer
            session.agreement_reached = True
            self._set_phase(session, "final_terms")
            self._set_phase(session, "contract_review")
            try:
                contract = assemble_contract(
                    outcome.final_offer,
                    run.buyer_request,
                    run.product,
                    now=self.clock.now(),
                    config=self.settings,
                    negotiation_summary=(
                        f"Agreed after {len(session.rounds)} round(s) of automated negotiation. "
                        f"{outcome.reason}"
                    ),
                )
            except ContractAssemblyException as e:
                contract_error = e.message
                logger.warning(f"Negotiation {session.id} succeeded but contract assembly failed: {e.message}")
            session.status = "completed"
            self._set_phase(session, "completed")
        else:
            session.failure_reason = outcome.reason
            session.status = "failed"
            self._set_phase(session, "failed")

        total_duration = self._elapsed_minutes(session)
        metrics = calculate_metrics(
            session.rounds,
            outcome.final_offer,
            outcome.success,
            total_duration,
            self.satisfaction_scorer,
        )

        self._emit(
            session,
            "negotiation_completed" if outcome.success else "negotiation_failed",
            outcome.reason,
            rounds=len(session.rounds),
            cancelled=outcome.cancelled,
        )
        logger.info(
            f"Negotiation {session.id} {'completed' if outcome.success else 'failed'} "
            f"after {len(session.rounds)} round(s): {outcome.reason}"
        )

        return NegotiationResult(
            session_id=session.id,
            success=outcome.success,
            final_offer=outcome.final_offer,
            rounds=list(session.rounds),
            total_duration=total_duration,
            reason=outcome.reason,
            metrics=metrics,
            contract=contract,
            contract_error=contract_error,
            cancelled=outcome.cancelled,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _cancelled(self, session: NegotiationSession) -> _Outcome:
        return _Outcome(
            success=False,
            reason=f"Negotiation cancelled after {len(session.rounds)} round(s)",
            cancelled=True,
        )

    def _elapsed_minutes(self, session: NegotiationSession) -> float:
        return max(0.0, (self.clock.now() - session.start_time).total_seconds() / 60)

    def _record_round(
        self,
        session: NegotiationSession,
        round_number: int,
        start_time: datetime,
        buyer_offer: Optional[Offer],
        supplier_offer: Optional[Offer],
        status: str,
        score: float
    ):
        now = self.clock.now()
        session.rounds.append(NegotiationRound(
            round_number=round_number,
            buyer_offer=buyer_offer,
            supplier_offer=supplier_offer,
            start_time=start_time,
            end_time=now,
            status=status,
            convergence_score=score,
        ))
        session.last_activity = now

    def _review_strategies(self, run: _ActiveRun):
        """Let both agents widen flexibility, then mirror their profiles onto the session."""
        for agent in (run.buyer, run.supplier):
            agent.update_strategy(
                run.session.rounds,
                review_interval=self.settings.STRATEGY_REVIEW_INTERVAL,
                stall_threshold=self.settings.STALL_THRESHOLD,
                step=self.settings.FLEXIBILITY_STEP,
            )
        run.session.buyer_agent = run.buyer.profile
        run.session.supplier_agent = run.supplier.profile

    async def _pace(self, run: _ActiveRun) -> bool:
        """
        Wait out the pacing delay unless cancelled first.

        Returns:
            True if the session was cancelled
        """
        delay = self.settings.ROUND_DELAY_SECONDS
        if run.cancel_event.is_set():
            return True
        if delay <= 0:
            await asyncio.sleep(0)
            return run.cancel_event.is_set()

        sleep_task = asyncio.ensure_future(self.clock.sleep(delay))
        cancel_task = asyncio.ensure_future(run.cancel_event.wait())
        try:
            await asyncio.wait({sleep_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleep_task, cancel_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleep_task, cancel_task, return_exceptions=True)
        return run.cancel_event.is_set()

    def _set_phase(self, session: NegotiationSession, phase: str):
        if session.current_phase == phase:
            return
        previous = session.current_phase
        session.current_phase = phase
        self._emit(
            session, "phase_changed", f"Phase changed: {previous} -> {phase}",
            previous_phase=previous, phase=phase,
        )

    def _emit_thinking(
        self,
        session: NegotiationSession,
        agent: NegotiationAgent,
        offer: Offer,
        context: DecisionContext
    ):
        self._emit(
            session,
            "agent_thinking",
            agent.commentary(offer),
            agent_id=agent.id,
            role=agent.role,
            walk_away_point=agent.calculate_walk_away_point(context),
        )

    def _emit(self, session: NegotiationSession, event_type: str, message: str, agent_id: Optional[str] = None, **data):
        payload = {
            key: value.model_dump(mode="json") if hasattr(value, "model_dump") else value
            for key, value in data.items()
        }
        self.events.publish(NegotiationEvent(
            session_id=session.id,
            type=event_type,
            timestamp=self.clock.now(),
            agent_id=agent_id,
            message=message,
            data=payload,
        ))
