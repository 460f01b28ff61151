"""Heuristic validation of a host's decoded settings.

Every check is a plain function over a
[SettingsView][hostprobe.rhp.settings.SettingsView] and the run's
[CheckContext][hostprobe.rhp.checks.CheckContext], returning a
[Finding][hostprobe.rhp.checks.Finding] or ``None``. Which checks apply to
which generation is data: [VARIANT_CHECKS][hostprobe.rhp.checks.VARIANT_CHECKS]
maps each transport variant to its ordered check tuple, so adding a rule to
one generation never touches the pipeline's control flow.

Findings are heuristics. Warnings never fail a probe; the only error-level
check is the tip desynchronization check of generation 4, where a host that
disagrees with consensus cannot form contracts.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from hostprobe.core.exceptions import FormatError
from hostprobe.models.constants import TransportVariant
from hostprobe.models.semver import SemVer

from .settings import SettingsView


BLOCKS_PER_DAY = 144
MIN_CONTRACT_DURATION = BLOCKS_PER_DAY * 30
TIP_HEIGHT_TOLERANCE = 3


class Severity(StrEnum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Finding:
    severity: Severity
    message: str


@dataclass(frozen=True, slots=True)
class CheckContext:
    """External state a run's checks compare against.

    Attributes:
        latest_release: Latest known-good release, snapshotted for the run.
        tip_height: Chain tip height, snapshotted for the run.
        dialed_address: The ``host:port`` the probe actually connected to.
    """

    latest_release: SemVer
    tip_height: int
    dialed_address: str


Check = Callable[[SettingsView, CheckContext], Finding | None]


def _warning(message: str) -> Finding:
    return Finding(Severity.WARNING, message)


def check_accepting_contracts(view: SettingsView, _ctx: CheckContext) -> Finding | None:
    if view.accepting_contracts is False:
        return _warning("host is not accepting contracts")
    return None


def check_announced_address(view: SettingsView, ctx: CheckContext) -> Finding | None:
    """Warn when a self-reported address differs from the one dialed."""
    if not view.announced_address or view.announced_address == ctx.dialed_address:
        return None
    return _warning(
        f'announced net address "{view.announced_address}" '
        f'does not match dialed address "{ctx.dialed_address}"'
    )


def check_max_collateral(view: SettingsView, _ctx: CheckContext) -> Finding | None:
    if view.max_collateral == 0:
        return _warning("host has no max collateral")
    return None


def check_collateral_pricing(view: SettingsView, _ctx: CheckContext) -> Finding | None:
    """Collateral must be present, above storage, and at least double it."""
    if view.collateral_price == 0:
        return _warning("host has no collateral price")
    if view.collateral_price < view.storage_price:
        return _warning("collateral price should be greater than storage price")
    if view.storage_price * 2 > view.collateral_price:
        return _warning("collateral should be at least double storage price")
    return None


def check_contract_duration(view: SettingsView, _ctx: CheckContext) -> Finding | None:
    if view.max_duration is not None and view.max_duration < MIN_CONTRACT_DURATION:
        return _warning("host has a max contract duration less than 30 days")
    return None


def check_tip_sync(view: SettingsView, ctx: CheckContext) -> Finding | None:
    if view.tip_height is None:
        return None
    if abs(view.tip_height - ctx.tip_height) >= TIP_HEIGHT_TOLERANCE:
        return Finding(
            Severity.ERROR,
            f"host's tip height {view.tip_height} differs from the current tip height "
            f"{ctx.tip_height}",
        )
    return None


def check_behind_consensus(view: SettingsView, ctx: CheckContext) -> Finding | None:
    if view.tip_height is not None and view.tip_height < ctx.tip_height:
        return _warning(f"host is behind consensus by {ctx.tip_height - view.tip_height} blocks")
    return None


def check_release(view: SettingsView, ctx: CheckContext) -> Finding | None:
    """Warn on an unparsable release or one older than the latest known-good release."""
    if view.release is None:
        return None
    try:
        release = SemVer.parse_release(view.release)
    except FormatError:
        return _warning(f'host is running an unknown version "{view.release}", which may not be stable')
    if release < ctx.latest_release:
        return _warning(
            f'host is running an outdated version "{release}", latest is "{ctx.latest_release}"'
        )
    return None


_NEWEST_CHECKS: tuple[Check, ...] = (
    check_accepting_contracts,
    check_announced_address,
    check_max_collateral,
    check_contract_duration,
    check_collateral_pricing,
    check_tip_sync,
    check_release,
)

VARIANT_CHECKS: dict[TransportVariant, tuple[Check, ...]] = {
    TransportVariant.RHP2: (
        check_accepting_contracts,
        check_announced_address,
        check_max_collateral,
        check_collateral_pricing,
        check_contract_duration,
        check_release,
    ),
    TransportVariant.RHP3: (
        check_max_collateral,
        check_collateral_pricing,
        check_behind_consensus,
    ),
    TransportVariant.SIAMUX: _NEWEST_CHECKS,
    TransportVariant.QUIC: _NEWEST_CHECKS,
}


def run_checks(
    variant: TransportVariant, view: SettingsView, ctx: CheckContext
) -> tuple[list[str], list[str]]:
    """Apply the variant's checks in order.

    Returns:
        ``(errors, warnings)`` message lists, each in check order.
    """
    errors: list[str] = []
    warnings: list[str] = []
    for check in VARIANT_CHECKS[variant]:
        finding = check(view, ctx)
        if finding is None:
            continue
        if finding.severity is Severity.ERROR:
            errors.append(finding.message)
        else:
            warnings.append(finding.message)
    return errors, warnings
