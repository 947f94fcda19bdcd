"""Transition executor: one entry point for every rule-governed mutation.

The executor owns one instance of each subject service sharing a session,
lock registry, rule set and clock. The HTTP layer and the maintenance
scheduler talk only to the executor.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from functools import lru_cache
from typing import Any, get_type_hints

from pydantic import BaseModel, ConfigDict, ValidationError, create_model
from sqlalchemy.orm import Session

from hearthstead.domain.eligibility import EligibilityCheck
from hearthstead.domain.errors import NotFound, ValidationFailure
from hearthstead.domain.models import SubjectSnapshot
from hearthstead.domain.rules_config import DEFAULT_RULES, RulesConfig
from hearthstead.models import utc_now
from hearthstead.services.business_service import BusinessService
from hearthstead.services.charter_service import CharterService
from hearthstead.services.guild_service import GuildService
from hearthstead.services.house_service import HouseService
from hearthstead.services.locking import DEFAULT_LOCKS, SubjectLocks
from hearthstead.services.religion_service import ReligionService
from hearthstead.services.social_class_service import SocialClassService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _params_model(func: Callable[..., Any]) -> type[BaseModel]:
    """Strict pydantic model mirroring ``func``'s parameters and annotations."""
    hints = get_type_hints(func)
    fields: dict[str, Any] = {}
    for name, parameter in inspect.signature(func).parameters.items():
        if name == "self":
            continue
        default = ... if parameter.default is inspect.Parameter.empty else parameter.default
        fields[name] = (hints.get(name, Any), default)
    return create_model(
        f"{func.__qualname__.replace('.', '_')}_params",
        __config__=ConfigDict(strict=True, extra="forbid", arbitrary_types_allowed=True),
        **fields,
    )


def _bind(
    handler: Callable[..., Any], kind: str, action: str, args: tuple, params: dict[str, Any]
) -> dict[str, Any]:
    """Bind and type-check call arguments, returning validated keyword arguments."""
    try:
        bound = inspect.signature(handler).bind(*args, **params)
    except TypeError as exc:
        raise ValidationFailure(f"Bad parameters for {kind}.{action}: {exc}") from exc
    model = _params_model(getattr(handler, "__func__", handler))
    try:
        validated = model.model_validate(dict(bound.arguments))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise ValidationFailure(f"Bad parameters for {kind}.{action}: {problems}") from exc
    return {name: getattr(validated, name) for name in bound.arguments}


class TransitionExecutor:
    """Dispatches named actions to the service owning the subject kind."""

    def __init__(
        self,
        session: Session,
        *,
        rules: RulesConfig = DEFAULT_RULES,
        locks: SubjectLocks | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        options = {"rules": rules, "locks": locks or DEFAULT_LOCKS, "clock": clock}
        self.session = session
        self.clock = clock
        self.houses = HouseService(session, **options)
        self.guilds = GuildService(session, **options)
        self.businesses = BusinessService(session, **options)
        self.religions = ReligionService(session, **options)
        self.charters = CharterService(session, **options)
        self.social = SocialClassService(session, **options)

        self._actions: dict[tuple[str, str], Callable[..., SubjectSnapshot]] = {
            ("house", "purchase"): self.houses.purchase_house,
            ("house", "upgrade"): self.houses.upgrade_house,
            ("house", "build_room"): self.houses.build_room,
            ("house", "demolish_room"): self.houses.demolish_room,
            ("house", "build_furniture"): self.houses.build_furniture,
            ("house", "demolish_furniture"): self.houses.demolish_furniture,
            ("house", "pay_upkeep"): self.houses.pay_upkeep,
            ("house", "repair"): self.houses.repair_house,
            ("house", "deposit_item"): self.houses.deposit_item,
            ("house", "withdraw_item"): self.houses.withdraw_item,
            ("guild", "create"): self.guilds.create_guild,
            ("guild", "join"): self.guilds.join_guild,
            ("guild", "leave"): self.guilds.leave_guild,
            ("guild", "donate"): self.guilds.donate,
            ("guild", "pay_dues"): self.guilds.pay_dues,
            ("guild", "promote"): self.guilds.promote_member,
            ("guild", "set_membership_fee"): self.guilds.set_membership_fee,
            ("guild", "set_weekly_dues"): self.guilds.set_weekly_dues,
            ("guild", "set_public"): self.guilds.set_public,
            ("guild", "start_election"): self.guilds.start_election,
            ("election", "declare_candidacy"): self.guilds.declare_candidacy,
            ("election", "vote"): self.guilds.vote,
            ("business", "establish"): self.businesses.establish,
            ("business", "close"): self.businesses.close,
            ("business", "deposit"): self.businesses.deposit,
            ("business", "withdraw"): self.businesses.withdraw,
            ("business", "hire"): self.businesses.hire,
            ("business", "fire"): self.businesses.fire,
            ("religion", "found_cult"): self.religions.found_cult,
            ("religion", "join"): self.religions.join,
            ("religion", "leave"): self.religions.leave,
            ("religion", "convert"): self.religions.convert_to_religion,
            ("religion", "adopt_belief"): self.religions.adopt_belief,
            ("religion", "drop_belief"): self.religions.drop_belief,
            ("religion", "perform_action"): self.religions.perform_action,
            ("religion", "promote"): self.religions.promote,
            ("religion", "demote"): self.religions.demote,
            ("charter", "create"): self.charters.create,
            ("charter", "submit"): self.charters.submit,
            ("charter", "sign"): self.charters.sign,
            ("charter", "approve"): self.charters.approve,
            ("charter", "reject"): self.charters.reject,
            ("charter", "found"): self.charters.found,
            ("charter", "cancel"): self.charters.cancel,
            ("player", "change_class"): self.social.change_class,
            ("player", "enserf"): self.social.enserf,
            ("player", "become_burgher"): self.social.become_burgher,
            ("player", "join_clergy"): self.social.join_clergy,
            ("player", "request_manumission"): self.social.request_manumission,
            ("player", "request_ennoblement"): self.social.request_ennoblement,
            ("class_request", "approve"): self.social.approve_request,
            ("class_request", "deny"): self.social.deny_request,
        }
        self._checks: dict[tuple[str, str], Callable[..., EligibilityCheck]] = {
            ("house", "purchase"): self.houses.check_purchase,
            ("house", "build_room"): self.houses.check_room,
            ("house", "build_furniture"): self.houses.check_furniture,
            ("guild", "create"): self.guilds.check_create,
            ("guild", "join"): self.guilds.check_join,
            ("business", "establish"): self.businesses.check_establish,
            ("charter", "create"): self.charters.check_create,
        }

    @property
    def actions(self) -> list[tuple[str, str]]:
        return sorted(self._actions)

    def apply(self, kind: str, action: str, *args: Any, **params: Any) -> SubjectSnapshot:
        """Apply ``action`` to a subject of ``kind``.

        Raises:
            NotFound: No such action, or a subject it names does not exist
            ValidationFailure: Parameters that do not fit the action
            IneligibleAction: A rule refused the action
            ConflictFailure: Stale eligibility or an illegal lifecycle move
        """
        handler = self._actions.get((kind, action))
        if handler is None:
            raise NotFound(f"Unknown action '{kind}.{action}'")
        return handler(**_bind(handler, kind, action, args, params))

    def check(self, kind: str, action: str, *args: Any, **params: Any) -> EligibilityCheck:
        """Pre-validate an action without changing state."""
        handler = self._checks.get((kind, action))
        if handler is None:
            raise NotFound(f"No eligibility check for '{kind}.{action}'")
        return handler(**_bind(handler, kind, action, args, params))

    def run_maintenance(self, now: datetime | None = None) -> dict[str, Any]:
        """Run every time-driven sweep once.

        Each sweep commits subject by subject, so a failure in one sweep is
        logged and the remaining sweeps still run.
        """
        now = now or self.clock()
        sweeps: dict[str, Callable[[datetime], Any]] = {
            "houses": self.houses.process_upkeep_degradation,
            "businesses": self.businesses.process_weekly,
            "charters": self.charters.expire_due,
            "elections": self.guilds.advance_elections,
            "class_requests": self.social.expire_requests,
        }
        results: dict[str, Any] = {}
        for name, sweep in sweeps.items():
            try:
                results[name] = sweep(now)
            except Exception:
                logger.exception("Maintenance sweep %s failed", name)
                results[name] = None
        return results
