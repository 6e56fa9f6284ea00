"""
Role sessions: the caller side of the contract engine.

A ``RoleContext`` carries what a UI session for one role accumulates
between actions (actor id, the latest quality snapshot, the last known
location) and is passed explicitly to the ``submit_*`` helpers. The helpers
apply caller-side policy before delegating to the engine:

- a quality check must have been captured (registration, transfer, production)
- registration is withheld below ``quality.min_score_to_register``

A captured snapshot is single-use: it is cleared after a successful call.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from herbchain.config import HerbChainConfig, get_config
from herbchain.engine import (
    COLLECTOR_ID,
    MANUFACTURER_ID,
    SUPPLIER_ID,
    BatchInput,
    ContractEngine,
)
from herbchain.observability import LedgerLayer, get_logger
from herbchain.quality import STATUS_FAILED, Pixels, assess
from herbchain.records import QualitySnapshot
from herbchain.results import ErrorKind, OperationResult

logger = get_logger("role_session", LedgerLayer.SESSION)


class Role(Enum):
    COLLECTOR = "collector"
    SUPPLIER = "supplier"
    MANUFACTURER = "manufacturer"


@dataclass(frozen=True)
class RoleProfile:
    role: Role
    default_actor_id: str
    threshold_key: str


ROLE_PROFILES: Dict[Role, RoleProfile] = {
    Role.COLLECTOR: RoleProfile(Role.COLLECTOR, COLLECTOR_ID, "min_score_to_register"),
    Role.SUPPLIER: RoleProfile(Role.SUPPLIER, SUPPLIER_ID, "min_score_to_transfer"),
    Role.MANUFACTURER: RoleProfile(Role.MANUFACTURER, MANUFACTURER_ID, "min_score_to_consume"),
}

QUALITY_REQUIRED = "Please run the quality check first."


def quality_threshold(role: Role, config: Optional[HerbChainConfig] = None) -> int:
    config = config if config is not None else get_config()
    return getattr(config.quality, ROLE_PROFILES[role].threshold_key).get()


@dataclass
class RoleContext:
    role: Role
    actor_id: str = ""
    quality: Optional[QualitySnapshot] = None
    location: str = ""

    def __post_init__(self) -> None:
        if not self.actor_id:
            self.actor_id = ROLE_PROFILES[self.role].default_actor_id

    def capture_quality(self, pixels: Pixels, config: Optional[HerbChainConfig] = None) -> QualitySnapshot:
        """Run the quality check on a snapshot and keep the result for the next submit."""
        self.quality = assess(pixels, quality_threshold(self.role, config), config)
        return self.quality

    def clear_quality(self) -> None:
        self.quality = None


def _require_role(ctx: RoleContext, role: Role) -> None:
    if ctx.role is not role:
        raise ValueError(f"{role.value} session required, got {ctx.role.value}")


def _missing_quality(ctx: RoleContext) -> OperationResult:
    logger.debug("Submission withheld: no quality check", role=ctx.role.value, actor_id=ctx.actor_id)
    return OperationResult.fail(ErrorKind.INVALID_INPUT, QUALITY_REQUIRED)


def _finish(ctx: RoleContext, result: OperationResult) -> OperationResult:
    if result.success:
        ctx.clear_quality()
    return result


def submit_registration(
    engine: ContractEngine,
    ctx: RoleContext,
    *,
    name: str,
    quantity: Any,
    unit_type: str,
    item_id: Optional[str] = None,
    location: Optional[str] = None,
) -> OperationResult:
    """Register a collected herb; the item id defaults to ``HERB-<ms timestamp>``."""
    _require_role(ctx, Role.COLLECTOR)
    if ctx.quality is None:
        return _missing_quality(ctx)
    threshold = quality_threshold(Role.COLLECTOR, engine.config)
    if ctx.quality.score < threshold:
        logger.info(
            "Registration withheld by quality policy",
            actor_id=ctx.actor_id,
            score=ctx.quality.score,
            threshold=threshold,
        )
        return OperationResult.fail(
            ErrorKind.QUALITY_BELOW_THRESHOLD,
            STATUS_FAILED,
            score=ctx.quality.score,
            threshold=threshold,
        )
    if item_id is None:
        item_id = f"HERB-{engine.clock.now()}"
    return _finish(ctx, engine.register(
        ctx.actor_id,
        item_id,
        name,
        location if location is not None else ctx.location,
        quantity,
        unit_type,
        ctx.quality,
    ))


def submit_verification(
    engine: ContractEngine,
    ctx: RoleContext,
    *,
    item_id: str,
    measured_quantity: Any,
) -> OperationResult:
    _require_role(ctx, Role.SUPPLIER)
    return engine.verify_receipt(ctx.actor_id, item_id, measured_quantity)


def submit_transfer(
    engine: ContractEngine,
    ctx: RoleContext,
    *,
    to_actor: str,
    item_id: str,
    weight: Any,
    unit_type: str,
    location: Optional[str] = None,
) -> OperationResult:
    _require_role(ctx, Role.SUPPLIER)
    if ctx.quality is None:
        return _missing_quality(ctx)
    return _finish(ctx, engine.transfer(
        ctx.actor_id,
        to_actor,
        item_id,
        weight,
        location if location is not None else ctx.location,
        unit_type,
        ctx.quality,
    ))


def submit_production(
    engine: ContractEngine,
    ctx: RoleContext,
    *,
    batch_id: str,
    used_batches: Sequence[BatchInput],
    final_weight: Any,
    final_unit: str,
    location: Optional[str] = None,
) -> OperationResult:
    _require_role(ctx, Role.MANUFACTURER)
    if ctx.quality is None:
        return _missing_quality(ctx)
    return _finish(ctx, engine.consume_into_product(
        ctx.actor_id,
        batch_id,
        location if location is not None else ctx.location,
        used_batches,
        final_weight,
        final_unit,
        ctx.quality,
    ))
