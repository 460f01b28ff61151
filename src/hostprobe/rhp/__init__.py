"""Protocol test pipeline: settings payloads, checks, transports, and results.

Depends on ``hostprobe.models`` and ``hostprobe.core``. Nothing here opens
a socket directly except
[StreamTransportProvider.dial()][hostprobe.rhp.transport.StreamTransportProvider.dial];
everything wire-specific is delegated to configured providers.

Attributes:
    ProbePipeline: The staged ``resolve -> dial -> handshake -> scan ->
        validate`` state machine. See [ProbePipeline][hostprobe.rhp.pipeline.ProbePipeline].
    VARIANT_CHECKS: Validation rules keyed by transport variant.
    ProtocolTestResult: Outcome of one probe.
    AggregateResult: All probe outcomes of one test call.
"""

from .checks import MIN_CONTRACT_DURATION, TIP_HEIGHT_TOLERANCE, VARIANT_CHECKS, CheckContext, run_checks
from .pipeline import VARIANT_SPECS, ProbePipeline, StageTimeouts, VariantSpec
from .results import AggregateResult, ProtocolTestResult
from .settings import (
    HostSettingsPayload,
    Rhp2Settings,
    Rhp3PriceTable,
    Rhp4Prices,
    Rhp4Settings,
    SettingsView,
    decode_settings,
)
from .transport import (
    DatagramTransportProvider,
    StreamConnection,
    StreamTransportProvider,
    TransportProvider,
)


__all__ = [
    "MIN_CONTRACT_DURATION",
    "TIP_HEIGHT_TOLERANCE",
    "VARIANT_CHECKS",
    "VARIANT_SPECS",
    "AggregateResult",
    "CheckContext",
    "DatagramTransportProvider",
    "HostSettingsPayload",
    "ProbePipeline",
    "ProtocolTestResult",
    "Rhp2Settings",
    "Rhp3PriceTable",
    "Rhp4Prices",
    "Rhp4Settings",
    "SettingsView",
    "StageTimeouts",
    "StreamConnection",
    "StreamTransportProvider",
    "TransportProvider",
    "VariantSpec",
    "decode_settings",
    "run_checks",
]
