"""Decoded settings payloads for each protocol generation.

Each generation answers its settings query with a differently shaped
document: RHP2 returns flat lowercase host settings, RHP3 a price table,
and RHP4 camelCase settings with a nested price block. The models below
accept those documents as-is (unknown keys are kept, not rejected) and
expose one normalized [SettingsView][hostprobe.rhp.settings.SettingsView]
so the validation checks never branch on generation.

Currency amounts are arbitrary-precision integers; the wire carries them
as decimal strings and they are serialized back the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Self

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer

from hostprobe.models.constants import TransportVariant


def _parse_currency(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("currency must be a decimal integer")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and value.isascii() and value.isdigit():
        amount = int(value)
    else:
        raise ValueError(f"currency must be a decimal integer, got {value!r}")
    if amount < 0:
        raise ValueError("currency must be non-negative")
    return amount


Currency = Annotated[
    int,
    BeforeValidator(_parse_currency),
    PlainSerializer(str, return_type=str, when_used="json"),
]


@dataclass(frozen=True, slots=True)
class SettingsView:
    """Generation-independent view of the fields the checks inspect.

    ``None`` means the generation does not report the field.
    """

    max_collateral: int
    collateral_price: int
    storage_price: int
    accepting_contracts: bool | None = None
    announced_address: str | None = None
    max_duration: int | None = None
    release: str | None = None
    tip_height: int | None = None


class HostSettingsPayload(BaseModel):
    """Base class for decoded settings documents."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def view(self) -> SettingsView:
        raise NotImplementedError


class Rhp2Settings(HostSettingsPayload):
    """Legacy generation 2 host settings.

    ``siamuxport`` is the port of the generation 3 endpoint, which lives on
    the same host as ``netaddress``.
    """

    accepting_contracts: bool = Field(default=False, alias="acceptingcontracts")
    net_address: str = Field(default="", alias="netaddress")
    max_duration: int = Field(default=0, ge=0, alias="maxduration")
    window_size: int = Field(default=0, ge=0, alias="windowsize")
    remaining_storage: int = Field(default=0, ge=0, alias="remainingstorage")
    total_storage: int = Field(default=0, ge=0, alias="totalstorage")
    collateral: Currency = Field(default=0)
    max_collateral: Currency = Field(default=0, alias="maxcollateral")
    contract_price: Currency = Field(default=0, alias="contractprice")
    storage_price: Currency = Field(default=0, alias="storageprice")
    upload_bandwidth_price: Currency = Field(default=0, alias="uploadbandwidthprice")
    download_bandwidth_price: Currency = Field(default=0, alias="downloadbandwidthprice")
    version: str = ""
    release: str = ""
    siamux_port: str = Field(default="", alias="siamuxport")

    def view(self) -> SettingsView:
        return SettingsView(
            accepting_contracts=self.accepting_contracts,
            announced_address=self.net_address,
            max_collateral=self.max_collateral,
            collateral_price=self.collateral,
            storage_price=self.storage_price,
            max_duration=self.max_duration,
            release=self.release,
        )


class Rhp3PriceTable(HostSettingsPayload):
    """Legacy generation 3 price table.

    The table carries no release string and no acceptance flag; the host's
    block height stands in for its view of consensus.
    """

    uid: str = ""
    validity: int = Field(default=0, ge=0)
    host_block_height: int = Field(default=0, ge=0, alias="hostblockheight")
    max_duration: int = Field(default=0, ge=0, alias="maxduration")
    window_size: int = Field(default=0, ge=0, alias="windowsize")
    collateral_cost: Currency = Field(default=0, alias="collateralcost")
    max_collateral: Currency = Field(default=0, alias="maxcollateral")
    write_store_cost: Currency = Field(default=0, alias="writestorecost")
    read_base_cost: Currency = Field(default=0, alias="readbasecost")
    upload_bandwidth_cost: Currency = Field(default=0, alias="uploadbandwidthcost")
    download_bandwidth_cost: Currency = Field(default=0, alias="downloadbandwidthcost")

    def view(self) -> SettingsView:
        return SettingsView(
            max_collateral=self.max_collateral,
            collateral_price=self.collateral_cost,
            storage_price=self.write_store_cost,
            max_duration=self.max_duration,
            tip_height=self.host_block_height,
        )


class Rhp4Prices(BaseModel):
    """Price block of generation 4 settings, pinned to the host's tip height."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    contract_price: Currency = Field(default=0, alias="contractPrice")
    collateral: Currency = Field(default=0)
    storage_price: Currency = Field(default=0, alias="storagePrice")
    ingress_price: Currency = Field(default=0, alias="ingressPrice")
    egress_price: Currency = Field(default=0, alias="egressPrice")
    free_sector_price: Currency = Field(default=0, alias="freeSectorPrice")
    tip_height: int = Field(default=0, ge=0, alias="tipHeight")
    valid_until: str | None = Field(default=None, alias="validUntil")
    signature: str | None = None


class Rhp4Settings(HostSettingsPayload):
    """Generation 4 host settings.

    ``netAddress`` is not part of the standard document; hosts that
    self-report it get the announced-address check.
    """

    protocol_version: list[int] | str | None = Field(default=None, alias="protocolVersion")
    release: str = ""
    wallet_address: str = Field(default="", alias="walletAddress")
    accepting_contracts: bool = Field(default=False, alias="acceptingContracts")
    max_collateral: Currency = Field(default=0, alias="maxCollateral")
    max_contract_duration: int = Field(default=0, ge=0, alias="maxContractDuration")
    max_sector_duration: int = Field(default=0, ge=0, alias="maxSectorDuration")
    max_sector_batch_size: int = Field(default=0, ge=0, alias="maxSectorBatchSize")
    remaining_storage: int = Field(default=0, ge=0, alias="remainingStorage")
    total_storage: int = Field(default=0, ge=0, alias="totalStorage")
    prices: Rhp4Prices = Field(default_factory=Rhp4Prices)
    net_address: str | None = Field(default=None, alias="netAddress")

    def view(self) -> SettingsView:
        return SettingsView(
            accepting_contracts=self.accepting_contracts,
            announced_address=self.net_address,
            max_collateral=self.max_collateral,
            collateral_price=self.prices.collateral,
            storage_price=self.prices.storage_price,
            max_duration=self.max_contract_duration,
            release=self.release,
            tip_height=self.prices.tip_height,
        )


SETTINGS_MODELS: dict[TransportVariant, type[HostSettingsPayload]] = {
    TransportVariant.RHP2: Rhp2Settings,
    TransportVariant.RHP3: Rhp3PriceTable,
    TransportVariant.SIAMUX: Rhp4Settings,
    TransportVariant.QUIC: Rhp4Settings,
}


def decode_settings(variant: TransportVariant, payload: Any) -> HostSettingsPayload:
    """Coerce a provider's settings answer into the variant's payload model.

    Providers may return the model itself or the raw mapping.

    Raises:
        pydantic.ValidationError: If the mapping does not fit the model.
        TypeError: If *payload* is neither a mapping nor the expected model.
    """
    model = SETTINGS_MODELS[variant]
    if isinstance(payload, model):
        return payload
    if isinstance(payload, dict):
        return model.model_validate(payload)
    raise TypeError(f"{variant} settings must be a mapping, got {type(payload).__name__}")
