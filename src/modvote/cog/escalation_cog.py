"""Discord surface for escalation votes.

- ``/escalate user``: posts a vote message with one button per resolution
  and opens the case.
- Button clicks (``vote-<resolution>|<id>``, ``expedite|<id>``,
  ``majority|<id>``) are routed through ``on_interaction`` so they keep
  working after a restart.
- When a case resolves (quorum, expedite or the background sweep) the decided
  action is applied to the reported member and the vote message is closed.

Delivery to Discord is best effort: failures are logged and never undo a vote
or resolution that is already committed.
"""

import uuid
from datetime import timedelta
from typing import Iterable, List, Optional, Tuple

import discord
from discord import Option
from discord.ext import commands

from modvote.configuration.app_configuration import AppConfig, app_config
from modvote.datatypes.escalation_datatypes import (
    CreateEscalationData,
    Escalation,
    Resolution,
    ResolutionEvent,
    ResolutionSource,
    VoteTally,
    VotingStrategy,
)
from modvote.escalation.errors import EscalationError, NotAuthorizedError
from modvote.escalation.escalation_messages import (
    build_resolved_message_content,
    build_vote_message_content,
    button_label,
)
from modvote.escalation.escalation_service import EscalationService
from modvote.escalation.escalation_store import EscalationStore, escalation_store, utcnow
from modvote.escalation.permissions import has_moderator_role
from modvote.escalation.planner import calculate_scheduled_for
from modvote.escalation.tally import tally_votes
from modvote.escalation.vote_recorder import VoteRecorder
from modvote.scheduler.resolution_scheduler import ResolutionScheduler
from modvote.util.logger import get_logger

logger = get_logger("escalation_cog")

VOTE_PREFIX = "vote-"
EXPEDITE_ACTION = "expedite"
MAJORITY_ACTION = "majority"

RESOLUTION_REASON = "voted resolution"


# ---------------------------------------------------------------------------
# Custom IDs and components
# ---------------------------------------------------------------------------

def parse_custom_id(custom_id: str) -> Optional[Tuple[str, Optional[Resolution], str]]:
    """Decode a button custom id into ``(action, resolution, escalation_id)``.

    Returns None for ids that do not belong to escalation buttons.
    """
    head, sep, escalation_id = (custom_id or "").partition("|")
    if not sep or not escalation_id:
        return None

    if head.startswith(VOTE_PREFIX):
        try:
            return "vote", Resolution(head[len(VOTE_PREFIX):]), escalation_id
        except ValueError:
            return None
    if head in (EXPEDITE_ACTION, MAJORITY_ACTION):
        return head, None, escalation_id
    return None


def vote_custom_id(resolution: Resolution, escalation_id: str) -> str:
    return f"{VOTE_PREFIX}{resolution.value}|{escalation_id}"


def build_vote_view(
    escalation: Escalation,
    tally: VoteTally,
    resolutions: Iterable[Resolution],
    disabled: bool = False,
) -> discord.ui.View:
    """Buttons for every offered resolution plus expedite / majority controls."""
    view = discord.ui.View(timeout=None)

    for resolution in resolutions:
        style = discord.ButtonStyle.secondary
        if resolution is Resolution.BAN:
            style = discord.ButtonStyle.danger
        elif resolution is Resolution.TRACK:
            style = discord.ButtonStyle.success
        view.add_item(discord.ui.Button(
            label=button_label(resolution, tally),
            style=style,
            custom_id=vote_custom_id(resolution, escalation.id),
            disabled=disabled,
        ))

    view.add_item(discord.ui.Button(
        label="Expedite",
        style=discord.ButtonStyle.primary,
        custom_id=f"{EXPEDITE_ACTION}|{escalation.id}",
        disabled=disabled or tally.leader is None,
        row=2,
    ))
    if escalation.voting_strategy is not VotingStrategy.MAJORITY:
        view.add_item(discord.ui.Button(
            label="Require majority vote",
            style=discord.ButtonStyle.primary,
            custom_id=f"{MAJORITY_ACTION}|{escalation.id}",
            disabled=disabled,
            row=2,
        ))
    return view


def caller_role_ids(user: object) -> List[str]:
    """Role IDs of an interaction user (empty for users outside a guild)."""
    return [str(role.id) for role in getattr(user, "roles", None) or []]


# ---------------------------------------------------------------------------
# Cog
# ---------------------------------------------------------------------------

class EscalationCog(commands.Cog):
    """Moderator escalation votes, their buttons and the resolution sweep."""

    def __init__(
        self,
        bot: discord.Bot,
        store: EscalationStore = escalation_store,
        config: AppConfig = app_config,
    ) -> None:
        self.bot = bot
        self.config = config
        self.store = store

        moderator_roles = config.moderator_role_ids
        if not moderator_roles:
            logger.warning("[ESCALATION COG] No moderator roles configured; nobody can vote")

        self.recorder = VoteRecorder(store, moderator_roles, config.vote_mode)
        self.service = EscalationService(
            store,
            moderator_roles,
            default_quorum=config.default_quorum,
            default_voting_strategy=config.default_voting_strategy,
        )
        self.scheduler = ResolutionScheduler(
            store,
            get_interval=lambda: config.sweep_interval,
            case_timeout=config.sweep_case_timeout,
            check_reported_user=self.reported_user_gone_reason,
        )
        self.scheduler.add_listener(self.announce_resolution)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if not self.scheduler.is_running:
            self.scheduler.start()
        logger.info("[ESCALATION COG] Ready (sweep interval=%.1fs)", self.config.sweep_interval)

    def cog_unload(self) -> None:
        self.scheduler.stop()
        logger.info("[ESCALATION COG] Stopped")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def offered_resolutions(self) -> List[Resolution]:
        """Resolutions shown as buttons; restrict needs a configured role."""
        return [
            resolution for resolution in Resolution
            if resolution is not Resolution.RESTRICT or self.config.restricted_role_id
        ]

    @property
    def panel_role_id(self) -> Optional[str]:
        roles = sorted(self.config.moderator_role_ids)
        return roles[0] if roles else None

    async def _reply_error(self, interaction: discord.Interaction, error: EscalationError) -> None:
        logger.info("[ESCALATION COG] Rejected %s: %s", type(error).__name__, error)
        try:
            if interaction.response.is_done():
                await interaction.followup.send(error.user_message, ephemeral=True)
            else:
                await interaction.response.send_message(error.user_message, ephemeral=True)
        except discord.HTTPException as exc:
            logger.warning("[ESCALATION COG] Could not deliver error reply: %s", exc)

    # ------------------------------------------------------------------
    # /escalate
    # ------------------------------------------------------------------

    @discord.slash_command(name="escalate", description="Call a moderator vote on what to do about a user")
    async def escalate(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "User the moderators should vote on", required=True),
    ) -> None:
        if not has_moderator_role(caller_role_ids(ctx.author), self.config.moderator_role_ids):
            await ctx.respond(NotAuthorizedError("escalate").user_message, ephemeral=True)
            return

        await ctx.defer(ephemeral=True)

        now = utcnow()
        draft = Escalation(
            id=str(uuid.uuid4()),
            guild_id=str(ctx.guild_id),
            thread_id=str(ctx.channel_id),
            vote_message_id="",
            reported_user_id=str(user.id),
            initiator_id=str(ctx.author.id),
            quorum=self.config.default_quorum,
            voting_strategy=self.config.default_voting_strategy,
            created_at=now,
            scheduled_for=calculate_scheduled_for(now, 0),
        )
        empty = VoteTally()

        try:
            message = await ctx.channel.send(
                content=build_vote_message_content(draft, empty, self.panel_role_id),
                view=build_vote_view(draft, empty, self.offered_resolutions),
            )
        except discord.HTTPException as exc:
            logger.error("[ESCALATION COG] Failed to post vote message: %s", exc)
            await ctx.followup.send("Failed to create escalation vote: could not post in this channel", ephemeral=True)
            return

        try:
            await self.service.create_escalation(
                CreateEscalationData(
                    id=draft.id,
                    guild_id=draft.guild_id,
                    reported_user_id=draft.reported_user_id,
                    initiator_id=draft.initiator_id,
                    thread_id=draft.thread_id,
                    vote_message_id=str(message.id),
                    quorum=draft.quorum,
                    voting_strategy=draft.voting_strategy,
                ),
                now=now,
            )
        except EscalationError as exc:
            logger.error("[ESCALATION COG] Failed to store escalation %s: %s", draft.id, exc)
            await message.edit(content="Failed to create escalation vote", view=None)
            await ctx.followup.send(exc.user_message, ephemeral=True)
            return

        await ctx.followup.send("Escalation started", ephemeral=True)

    # ------------------------------------------------------------------
    # Buttons
    # ------------------------------------------------------------------

    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type is not discord.InteractionType.component:
            return
        parsed = parse_custom_id((interaction.data or {}).get("custom_id", ""))
        if parsed is None:
            return

        action, resolution, escalation_id = parsed
        try:
            if action == "vote":
                await self.handle_vote(interaction, escalation_id, resolution)
            elif action == EXPEDITE_ACTION:
                await self.handle_expedite(interaction, escalation_id)
            else:
                await self.handle_majority(interaction, escalation_id)
        except EscalationError as exc:
            await self._reply_error(interaction, exc)

    async def handle_vote(
        self,
        interaction: discord.Interaction,
        escalation_id: str,
        resolution: Resolution,
    ) -> None:
        outcome = await self.recorder.cast_vote(
            escalation_id,
            str(interaction.user.id),
            resolution,
            caller_role_ids(interaction.user),
        )

        if outcome.resolved:
            event = ResolutionEvent(
                escalation=outcome.escalation,
                resolution=outcome.resolution,
                tally=outcome.tally,
                source=ResolutionSource.QUORUM,
                resolved_at=outcome.escalation.resolved_at,
            )
            await self._close_vote_message(interaction, event)
            await self.apply_resolution(event)
            return

        if outcome.early_resolution:
            # Quorum reached but another path resolved first; keep its closed message
            current = await self.store.get(escalation_id)
            if current.is_resolved:
                try:
                    await interaction.response.edit_message(
                        view=build_vote_view(current, outcome.tally, self.offered_resolutions, disabled=True),
                    )
                except discord.HTTPException as exc:
                    logger.warning("[ESCALATION COG] Could not close vote message of %s: %s", escalation_id, exc)
                return

        try:
            await interaction.response.edit_message(
                content=build_vote_message_content(outcome.escalation, outcome.tally, self.panel_role_id),
                view=build_vote_view(outcome.escalation, outcome.tally, self.offered_resolutions),
            )
        except discord.HTTPException as exc:
            logger.warning("[ESCALATION COG] Vote on %s recorded but message update failed: %s", escalation_id, exc)

    async def handle_expedite(self, interaction: discord.Interaction, escalation_id: str) -> None:
        event = await self.service.expedite(
            escalation_id,
            str(interaction.user.id),
            caller_role_ids(interaction.user),
        )
        await self._close_vote_message(interaction, event)
        await self.apply_resolution(event)

    async def handle_majority(self, interaction: discord.Interaction, escalation_id: str) -> None:
        escalation = await self.service.require_majority(
            escalation_id,
            caller_role_ids(interaction.user),
            str(interaction.user.id),
        )
        tally = tally_votes(await self.store.list_votes(escalation_id))
        try:
            await interaction.response.edit_message(
                content=build_vote_message_content(escalation, tally, self.panel_role_id),
                view=build_vote_view(escalation, tally, self.offered_resolutions),
            )
        except discord.HTTPException as exc:
            logger.warning("[ESCALATION COG] Majority upgrade of %s saved but message update failed: %s", escalation_id, exc)

    async def _close_vote_message(self, interaction: discord.Interaction, event: ResolutionEvent) -> None:
        try:
            await interaction.response.edit_message(
                content=build_resolved_message_content(event),
                view=build_vote_view(event.escalation, event.tally, self.offered_resolutions, disabled=True),
            )
        except discord.HTTPException as exc:
            logger.warning("[ESCALATION COG] Escalation %s resolved but message update failed: %s", event.escalation.id, exc)

    # ------------------------------------------------------------------
    # Resolution delivery
    # ------------------------------------------------------------------

    async def announce_resolution(self, event: ResolutionEvent) -> None:
        """Sweep listener: close the vote message and apply the action."""
        escalation = event.escalation
        try:
            channel = self.bot.get_channel(int(escalation.thread_id)) or await self.bot.fetch_channel(int(escalation.thread_id))
            message = await channel.fetch_message(int(escalation.vote_message_id))
            await message.edit(
                view=build_vote_view(escalation, event.tally, self.offered_resolutions, disabled=True),
            )
            await message.reply(build_resolved_message_content(event))
        except (discord.HTTPException, ValueError) as exc:
            logger.warning("[ESCALATION COG] Could not announce resolution of %s: %s", escalation.id, exc)

        await self.apply_resolution(event)

    async def reported_user_gone_reason(self, escalation: Escalation) -> Optional[str]:
        """Why the reported user can no longer be acted on, or None while they are a member.

        Lookup failures other than "not found" count as present so a Discord
        hiccup never downgrades a voted resolution.
        """
        guild = self.bot.get_guild(int(escalation.guild_id))
        if guild is None:
            return None

        user_id = int(escalation.reported_user_id)
        if guild.get_member(user_id) is not None:
            return None
        try:
            await guild.fetch_member(user_id)
            return None
        except discord.NotFound:
            pass
        except discord.HTTPException as exc:
            logger.warning("[ESCALATION COG] Member lookup for %s failed: %s", user_id, exc)
            return None

        try:
            await self.bot.fetch_user(user_id)
        except discord.NotFound:
            return "account no longer exists"
        except discord.HTTPException as exc:
            logger.warning("[ESCALATION COG] User lookup for %s failed: %s", user_id, exc)
        return "left the server"

    async def apply_resolution(self, event: ResolutionEvent) -> None:
        """Carry out the decided action on the reported member."""
        escalation = event.escalation
        resolution = event.resolution

        if resolution in (Resolution.TRACK, Resolution.NUDGE, Resolution.WARNING):
            logger.debug("[ESCALATION COG] %s needs no platform action for %s", resolution, escalation.id)
            return

        guild = self.bot.get_guild(int(escalation.guild_id))
        if guild is None:
            logger.warning("[ESCALATION COG] Guild %s not found; cannot apply %s", escalation.guild_id, resolution)
            return

        member = guild.get_member(int(escalation.reported_user_id))
        if member is None:
            try:
                member = await guild.fetch_member(int(escalation.reported_user_id))
            except discord.NotFound:
                logger.info(
                    "[ESCALATION COG] User %s left guild %s; %s not applied",
                    escalation.reported_user_id, escalation.guild_id, resolution,
                )
                return
            except discord.HTTPException as exc:
                logger.error(
                    "[ESCALATION COG] Could not fetch user %s in guild %s; %s not applied: %s",
                    escalation.reported_user_id, escalation.guild_id, resolution, exc,
                )
                return

        try:
            if resolution is Resolution.TIMEOUT:
                await member.timeout_for(timedelta(hours=self.config.timeout_duration_hours), reason=RESOLUTION_REASON)
            elif resolution is Resolution.RESTRICT:
                role_id = self.config.restricted_role_id
                if role_id is None:
                    logger.warning("[ESCALATION COG] No restricted role configured; %s not restricted", member.id)
                    return
                await member.add_roles(discord.Object(id=int(role_id)), reason=RESOLUTION_REASON)
            elif resolution is Resolution.KICK:
                await member.kick(reason=RESOLUTION_REASON)
            elif resolution is Resolution.BAN:
                await member.ban(reason=RESOLUTION_REASON)
        except discord.HTTPException as exc:
            logger.error(
                "[ESCALATION COG] Failed to apply %s to %s for escalation %s: %s",
                resolution, member.id, escalation.id, exc,
            )
            return

        logger.info("[ESCALATION COG] Applied %s to %s (escalation %s)", resolution, member.id, escalation.id)


def setup(bot: discord.Bot) -> None:
    bot.add_cog(EscalationCog(bot))
