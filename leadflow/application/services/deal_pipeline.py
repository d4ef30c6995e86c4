"""DealPipeline: stage transitions, stage history and follow-up deadlines of deals."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta

from leadflow.application.locks import KeyedLocks
from leadflow.application.ports.deal_repo import DealRepository
from leadflow.application.ports.lead_repo import LeadRepository
from leadflow.application.ports.notification_port import (
    NotificationEvent,
    NotificationKind,
    NotificationPort,
    notify_safely,
)
from leadflow.application.ports.onboarding_port import OnboardingPort
from leadflow.application.ports.team_member_repo import TeamMemberRepository
from leadflow.domain.entities.deal import Deal
from leadflow.domain.entities.lead import Lead
from leadflow.domain.entities.team_member import TeamMember
from leadflow.domain.errors import (
    AlreadyTerminalError,
    DealNotFoundError,
    InvalidStageError,
)
from leadflow.domain.policies.deal_terms import deal_priority, deal_title, estimate_deal_value
from leadflow.domain.policies.pipelines import PIPELINES, pipeline_for
from leadflow.domain.value_objects.enums import Department, DealStatus, StageKind
from leadflow.domain.value_objects.pipeline import Pipeline, PipelineStage
from leadflow.domain.value_objects.timestamps import Clock, utcnow

logger = logging.getLogger(__name__)


def _dollars(cents: int) -> str:
    return f"${cents / 100:,.2f}"


class DealPipeline:
    """Moves deals through their department pipeline.

    All transitions for one deal are serialized (in-process lock plus a row
    lock in the SQL adapter). Collaborators (onboarding, notifications) are
    called after the lock is released and never undo a transition.
    """

    def __init__(
        self,
        deal_repo: DealRepository,
        lead_repo: LeadRepository,
        member_repo: TeamMemberRepository,
        onboarding: OnboardingPort,
        notifier: NotificationPort,
        locks: KeyedLocks | None = None,
        clock: Clock = utcnow,
    ):
        self._deals = deal_repo
        self._leads = lead_repo
        self._members = member_repo
        self._onboarding = onboarding
        self._notifier = notifier
        self._locks = locks or KeyedLocks()
        self._clock = clock

    # ─── Queries ─────────────────────────────────────────────────────

    def pipelines(self) -> dict[Department, Pipeline]:
        return PIPELINES

    async def get_deal(self, deal_id: int) -> Deal:
        deal = await self._deals.get_by_id(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)
        return deal

    async def list_deals(self, pipeline: Department, member_id: int | None = None) -> list[Deal]:
        return await self._deals.get_active(pipeline, member_id)

    async def deals_for_member(self, member_id: int) -> list[Deal]:
        return await self._deals.get_by_member(member_id)

    async def overdue_deals(self) -> list[Deal]:
        return await self._deals.get_followups_between(None, self._clock())

    async def todays_followups(self, member_id: int | None = None) -> list[Deal]:
        now = self._clock()
        start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        return await self._deals.get_followups_between(start, start + timedelta(days=1), member_id)

    async def recommendations(self, deal_id: int) -> list[str]:
        deal = await self.get_deal(deal_id)
        return list(pipeline_for(deal.pipeline).stage(deal.stage).next_actions)

    # ─── Creation ────────────────────────────────────────────────────

    async def create_from_hot_lead(self, lead: Lead, member: TeamMember) -> Deal:
        """Open a deal at the first stage of the lead's department pipeline."""
        now = self._clock()
        pipeline = pipeline_for(lead.department())
        first = pipeline.first_stage()

        deal = Deal(
            id=None,
            lead_id=lead.id,
            assigned_to_id=member.id,
            title=deal_title(lead),
            pipeline=pipeline.department,
            stage=first.name,
            value=estimate_deal_value(lead),
            priority=deal_priority(lead.lead_score),
            source=lead.source,
            created_at=now,
            updated_at=now,
            tags=[*lead.tags, "HotLead", f"Score:{lead.lead_score}"],
            next_followup_at=pipeline.followup_at(first.name, now),
        )
        deal.enter_stage(
            first.name,
            now,
            deal.next_followup_at,
            history_note=f"Deal created from hot lead (score {lead.lead_score})",
        )
        deal.last_contacted_at = None
        await self._deals.save(deal)

        logger.info(
            "Deal %s created: %s (%s) -> member %s, value %s, follow-up %s",
            deal.id, deal.title, pipeline.department.value, member.id,
            _dollars(deal.value), deal.next_followup_at.isoformat(),
        )
        self._notify(NotificationKind.DEAL_CREATED, deal)
        return deal

    # ─── Transitions ─────────────────────────────────────────────────

    async def advance(self, deal_id: int, notes: str | None = None) -> Deal:
        """Move to the immediately following stage of the deal's current track.

        Raises:
            AlreadyFinalStageError: at the end of the sales or post-win track.
                Closing branches are only reached through :meth:`close`.
        """
        async with self._locks.hold(("deal", deal_id)):
            deal = await self._load_for_update(deal_id)
            self._ensure_not_lost(deal)
            pipeline = pipeline_for(deal.pipeline)
            next_stage = pipeline.next_stage(deal.stage)
            trigger = await self._apply_stage(deal, pipeline, next_stage, notes)

        return await self._after_transition(deal, trigger)

    async def set_stage(self, deal_id: int, new_stage: str, notes: str | None = None) -> Deal:
        async with self._locks.hold(("deal", deal_id)):
            deal = await self._load_for_update(deal_id)
            pipeline = pipeline_for(deal.pipeline)
            stage = pipeline.stage(new_stage)
            trigger = await self._apply_stage(deal, pipeline, stage, notes)

        return await self._after_transition(deal, trigger)

    async def close(
        self,
        deal_id: int,
        won: bool,
        final_value: int | None = None,
        notes: str | None = None,
    ) -> Deal:
        """Close as won or lost on the pipeline's own closing stage. Terminal."""
        if final_value is not None and final_value < 0:
            raise ValueError("Deal value cannot be negative")

        async with self._locks.hold(("deal", deal_id)):
            deal = await self._load_for_update(deal_id)
            if deal.is_closed():
                raise AlreadyTerminalError("Deal", deal.id, deal.status.value)

            pipeline = pipeline_for(deal.pipeline)
            stage = pipeline.won_stage() if won else pipeline.lost_stage()
            if final_value is not None:
                deal.value = final_value

            history_note = f"Deal {'won' if won else 'lost'}"
            if final_value is not None:
                history_note += f" - Final value: {_dollars(final_value)}"
            if notes:
                history_note += f" - {notes}"

            trigger = await self._apply_stage(
                deal,
                pipeline,
                stage,
                f"DEAL {'WON' if won else 'LOST'} - {notes}" if notes else None,
                history_note=history_note,
            )

        logger.info(
            "Deal %s CLOSED: %s (%s)", deal.id, "WON" if won else "LOST", _dollars(deal.value)
        )
        self._notify(NotificationKind.DEAL_CLOSED, deal, won=won)
        if trigger:
            await self._trigger_onboarding(deal)
        return deal

    async def update_value(self, deal_id: int, value: int) -> Deal:
        if value < 0:
            raise ValueError("Deal value cannot be negative")
        async with self._locks.hold(("deal", deal_id)):
            deal = await self._load_for_update(deal_id)
            deal.value = value
            deal.updated_at = self._clock()
            await self._deals.update(deal)
        logger.info("Deal %s value updated to %s", deal_id, _dollars(value))
        return deal

    # ─── Internals ───────────────────────────────────────────────────

    async def _apply_stage(
        self,
        deal: Deal,
        pipeline: Pipeline,
        stage: PipelineStage,
        notes: str | None,
        history_note: str | None = None,
    ) -> bool:
        """Validate and persist one transition; return True if onboarding must fire.

        Must be called with the deal lock held. The onboarding claim is taken
        here so concurrent entries into the trigger stage fire it only once.
        """
        self._ensure_transition_allowed(deal, pipeline, stage)

        now = self._clock()
        status = None
        if stage.kind == StageKind.WON:
            status = DealStatus.WON
        elif stage.kind == StageKind.LOST:
            status = DealStatus.LOST

        deal.enter_stage(
            stage.name,
            now,
            pipeline.followup_at(stage.name, now),
            history_note=history_note or notes or f"Moved to {stage.name}",
            notes=notes,
            status=status,
        )

        trigger = stage.triggers_onboarding and deal.onboarding_triggered_at is None
        if trigger:
            deal.onboarding_triggered_at = now
        await self._deals.update(deal)
        logger.info("Deal %s moved to: %s", deal.id, stage.name)
        return trigger

    async def _after_transition(self, deal: Deal, trigger: bool) -> Deal:
        self._notify(NotificationKind.DEAL_STAGE_CHANGED, deal)
        if trigger:
            await self._trigger_onboarding(deal)
        return deal

    def _ensure_transition_allowed(
        self, deal: Deal, pipeline: Pipeline, stage: PipelineStage
    ) -> None:
        self._ensure_not_lost(deal)
        if deal.status == DealStatus.WON and stage.kind not in (StageKind.WON, StageKind.POST_WIN):
            raise AlreadyTerminalError("Deal", deal.id, deal.status.value)
        # Onboarding never walks back to the closing stage
        if deal.status == DealStatus.WON and stage.kind == StageKind.WON and deal.stage != stage.name:
            raise AlreadyTerminalError("Deal", deal.id, deal.status.value)
        if deal.status != DealStatus.WON and stage.kind == StageKind.POST_WIN:
            raise InvalidStageError(
                stage.name, pipeline.department.value, "only reachable after the deal is won"
            )

    @staticmethod
    def _ensure_not_lost(deal: Deal) -> None:
        if deal.status == DealStatus.LOST:
            raise AlreadyTerminalError("Deal", deal.id, deal.status.value)

    async def _trigger_onboarding(self, deal: Deal) -> None:
        """Start onboarding once per deal; a failure releases the claim for a later retry."""
        lead = await self._leads.get_by_id(deal.lead_id)
        member = await self._members.get_by_id(deal.assigned_to_id)
        if lead is None or member is None:
            logger.error(
                "Onboarding skipped for deal %s: lead %s or member %s not found",
                deal.id, deal.lead_id, deal.assigned_to_id,
            )
            await self._release_onboarding_claim(deal)
            return

        try:
            await self._onboarding.start_onboarding(deal, lead, member)
        except Exception:
            logger.exception("Failed to trigger onboarding for deal %s", deal.id)
            await self._release_onboarding_claim(deal)
            return

        logger.info("Onboarding sequence triggered for deal %s (%s)", deal.id, deal.stage)

    async def _release_onboarding_claim(self, deal: Deal) -> None:
        async with self._locks.hold(("deal", deal.id)):
            current = await self._load_for_update(deal.id)
            current.onboarding_triggered_at = None
            await self._deals.update(current)
        deal.onboarding_triggered_at = None

    async def _load_for_update(self, deal_id: int) -> Deal:
        deal = await self._deals.get_by_id(deal_id, for_update=True)
        if deal is None:
            raise DealNotFoundError(deal_id)
        return deal

    def _notify(self, kind: NotificationKind, deal: Deal, **extra) -> None:
        notify_safely(
            self._notifier,
            NotificationEvent(
                kind=kind,
                payload={
                    "deal_id": deal.id,
                    "lead_id": deal.lead_id,
                    "assigned_to_id": deal.assigned_to_id,
                    "pipeline": deal.pipeline.value,
                    "stage": deal.stage,
                    "status": deal.status.value,
                    "value": deal.value,
                    **extra,
                },
                occurred_at=self._clock(),
            ),
        )
