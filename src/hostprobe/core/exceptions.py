"""HostProbe exception hierarchy.

Provides typed exceptions for every failure category so callers can tell
probe-local failures (recorded on a single result) from manager-level
conditions (which abort a whole call), while ``CancelledError`` always
propagates untouched.

Exception hierarchy:

```text
HostProbeError (base -- never raised directly)
├── ConfigurationError          -- config validation, bad YAML, bad provider path
├── FormatError                 -- malformed version, key, or address text
├── CooldownError               -- host key tested too recently
├── ShutdownError               -- manager no longer accepting work
├── UpstreamError               -- explorer or release lookup failed
└── TransportError              -- probe-level network failures
    ├── DnsError                -- resolver unreachable or misbehaving
    │   └── HostNotFoundError   -- name has no A/AAAA records
    ├── DialError               -- connection could not be opened
    │   ├── DialDnsError
    │   ├── ConnectionRefusedDialError
    │   ├── DialTimeoutError
    │   └── UnreachablePortError
    ├── HandshakeError          -- transport upgrade failed
    ├── ScanError               -- settings query failed
    └── ProbeCancelledError     -- deadline or shutdown fired mid-stage
```

This module has no imports from the rest of the package, so the models
layer can raise [FormatError][hostprobe.core.exceptions.FormatError]
without depending on anything above it.

See Also:
    [TroubleshootManager][hostprobe.services.troubleshoot.TroubleshootManager]:
        Raises [CooldownError][hostprobe.core.exceptions.CooldownError] and
        [ShutdownError][hostprobe.core.exceptions.ShutdownError].
    [ProbePipeline][hostprobe.rhp.pipeline.ProbePipeline]: Converts every
        [TransportError][hostprobe.core.exceptions.TransportError] into a
        probe-level error string.
"""

from __future__ import annotations


class HostProbeError(Exception):
    """Base exception for all HostProbe errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration and input
# ---------------------------------------------------------------------------


class ConfigurationError(HostProbeError):
    """Invalid or missing configuration (YAML, env vars, provider paths).

    See Also:
        [load_yaml()][hostprobe.core.yaml.load_yaml]: YAML loading function
            that may trigger configuration errors.
        [load_provider()][hostprobe.utils.providers.load_provider]:
            Raises this for unresolvable ``module:attribute`` paths.
    """


class FormatError(HostProbeError, ValueError):
    """Malformed input text: version string, public key, or ``host:port``.

    Always local: the pipeline attaches it to the smallest relevant scope
    (one probe), never to the whole run. Subclasses ``ValueError`` so
    pydantic validators and generic callers treat it as bad input.
    """


# ---------------------------------------------------------------------------
# Manager-level conditions
# ---------------------------------------------------------------------------


class CooldownError(HostProbeError):
    """The host key was tested too recently.

    Caller-visible and expected; not logged as a failure.

    Attributes:
        remaining: Seconds until the host may be tested again, always in
            ``(0, cooldown]``.
    """

    def __init__(self, remaining: float) -> None:
        self.remaining = remaining
        super().__init__(f"host is on cooldown, please try again in {remaining:.1f}s")


class ShutdownError(HostProbeError):
    """The manager has begun shutdown and accepts no new work."""


class UpstreamError(HostProbeError):
    """An external state source (explorer, release lookup) failed.

    Fatal only while the manager is starting; background refreshes log it
    and keep the previous cached value.
    """


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(HostProbeError):
    """Base for every probe-level network failure.

    The message of a subclass instance is the user-facing guidance text
    recorded in [ProtocolTestResult.errors][hostprobe.rhp.results.ProtocolTestResult].
    """


class DnsError(TransportError):
    """DNS resolution failed for a reason other than a missing record."""


class HostNotFoundError(DnsError):
    """The name resolved to no A/AAAA records on any path."""


class DialError(TransportError):
    """The transport connection could not be opened."""


class DialDnsError(DialError):
    """The dialer itself could not resolve the address."""


class ConnectionRefusedDialError(DialError):
    """The remote actively refused the connection."""


class DialTimeoutError(DialError):
    """The dial did not complete before its deadline."""


class UnreachablePortError(DialError):
    """A datagram transport saw no network activity from the remote port."""


class HandshakeError(TransportError):
    """The variant-specific transport upgrade failed."""


class ScanError(TransportError):
    """The settings query failed or returned an undecodable payload."""


class ProbeCancelledError(TransportError):
    """The shared deadline or a manager shutdown interrupted a stage."""
