"""Release version parsing and ordering.

Host software reports its release as ``v<MAJOR>.<MINOR>.<PATCH>[-<SUFFIX>]``,
sometimes prefixed with the application name (``"hostd v2.0.1"``). Each
numeric component must fit in an unsigned byte.

Ordering compares the numeric triple first; when it is equal, a stable
build (no suffix) sorts above any pre-release build. Two pre-release
builds of the same triple compare equal regardless of their suffix text.

Examples:
    ```python
    v = SemVer.parse("v1.6.0-rc1")
    str(v)                                        # 'v1.6.0-rc1'
    v < SemVer.parse("v1.6.0")                    # True
    SemVer.parse_release("hostd v2.0.1").minor    # 0
    ```
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from hostprobe.core.exceptions import FormatError


_MAX_COMPONENT = 255
_VERSION_MARKER = "v"


def _parse_component(text: str, name: str) -> int:
    if not text or not text.isascii() or not text.isdigit():
        raise FormatError(f"invalid {name} version: {text}")
    value = int(text)
    if value > _MAX_COMPONENT:
        raise FormatError(f"invalid {name} version: {text}")
    return value


@dataclass(frozen=True, slots=True)
class SemVer:
    """A parsed release version.

    Attributes:
        major: Major component (0-255).
        minor: Minor component (0-255).
        patch: Patch component (0-255).
        suffix: Pre-release suffix without the leading ``-``; empty for
            stable releases.
    """

    major: int = 0
    minor: int = 0
    patch: int = 0
    suffix: str = ""

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an int, got {type(value).__name__}")
            if not 0 <= value <= _MAX_COMPONENT:
                raise FormatError(f"{name} version {value} out of range 0-{_MAX_COMPONENT}")
        if not isinstance(self.suffix, str):
            raise TypeError(f"suffix must be a str, got {type(self.suffix).__name__}")

    @classmethod
    def parse(cls, text: str) -> SemVer:
        """Parse ``v<MAJOR>.<MINOR>.<PATCH>[-<SUFFIX>]``.

        Raises:
            FormatError: If the text is empty, lacks the ``v`` marker, does
                not have exactly three numeric components, or a component
                does not fit in 0-255.
        """
        if not text:
            raise FormatError("empty version string")
        if not text.startswith(_VERSION_MARKER):
            raise FormatError(f"invalid version format: {text}")

        version = text[len(_VERSION_MARKER) :]
        version, sep, suffix = version.partition("-")
        if not sep:
            suffix = ""

        parts = version.split(".")
        if len(parts) != 3:
            raise FormatError(f"invalid version format: {version}")

        return cls(
            major=_parse_component(parts[0], "major"),
            minor=_parse_component(parts[1], "minor"),
            patch=_parse_component(parts[2], "patch"),
            suffix=suffix,
        )

    @classmethod
    def parse_release(cls, text: str) -> SemVer:
        """Parse a release string that may carry an application-name prefix.

        ``"hostd v2.0.1"`` and ``"v2.0.1"`` both parse to ``v2.0.1``.
        """
        fields = text.split()
        if len(fields) > 1:
            text = fields[1]
        return cls.parse(text)

    @property
    def is_prerelease(self) -> bool:
        """True if the version carries a pre-release suffix."""
        return bool(self.suffix)

    def compare(self, other: SemVer) -> int:
        """Return ``-1``, ``0`` or ``1`` as *self* is less than, equal to, or greater than *other*."""
        mine = (self.major, self.minor, self.patch)
        theirs = (other.major, other.minor, other.patch)
        if mine != theirs:
            return -1 if mine < theirs else 1
        if not self.suffix and other.suffix:
            return 1
        if self.suffix and not other.suffix:
            return -1
        return 0

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self.compare(other) < 0

    def __le__(self, other: Any) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self.compare(other) <= 0

    def __gt__(self, other: Any) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self.compare(other) > 0

    def __ge__(self, other: Any) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self.compare(other) >= 0

    def __str__(self) -> str:
        base = f"v{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.suffix}" if self.suffix else base


def compare(a: SemVer, b: SemVer) -> int:
    """Module-level alias for [SemVer.compare][hostprobe.models.semver.SemVer.compare]."""
    return a.compare(b)
