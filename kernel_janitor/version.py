"""
Kernel version model.

Parses kernel release identifiers such as 'linux-5.10.1-gentoo' or
'5.15.0-rc3-gentoo' and orders them numerically component by component.
"""

import re
from functools import total_ordering
from typing import Tuple

from .errors import InvalidVersion

# Family prefixes carried by source directories but not by module directories
FAMILY_PREFIXES = ("linux-",)

_SEPARATORS = re.compile(r"[.\-]")
_NUMERIC = re.compile(r"^[0-9]+$")

Token = Tuple[bool, str]


def _token_key(token: Token) -> Tuple[int, int, str]:
    # Numeric tokens sort above non-numeric ones at the same position
    is_numeric, text = token
    if is_numeric:
        return (1, int(text), "")
    return (0, 0, text)


@total_ordering
class KernelVersion:
    """
    A parsed kernel version.

    Attributes:
        major: Major version number
        minor: Minor version number (0 when absent)
        patch: Patch level (0 when absent)
        extra: Remaining tokens as (is_numeric, text) pairs, e.g. 'rc1', 'gentoo'
    """

    def __init__(self, major: int, minor: int = 0, patch: int = 0,
                 extra: Tuple[Token, ...] = (), text: str = ""):
        self.major = major
        self.minor = minor
        self.patch = patch
        self.extra = tuple(extra)
        self._text = text

    def sort_key(self) -> tuple:
        return (self.major, self.minor, self.patch,
                tuple(_token_key(token) for token in self.extra))

    def __eq__(self, other):
        if not isinstance(other, KernelVersion):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other):
        if not isinstance(other, KernelVersion):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __hash__(self):
        return hash(self.sort_key())

    def __str__(self):
        if self._text:
            return self._text
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.extra:
            text += "-" + "-".join(token for _, token in self.extra)
        return text

    def __repr__(self):
        return f"KernelVersion({str(self)!r})"


def strip_family_prefix(text: str) -> str:
    """Remove a recognized family prefix such as 'linux-' if present."""
    for prefix in FAMILY_PREFIXES:
        if text.startswith(prefix):
            return text[len(prefix):]
    return text


def parse(text: str) -> KernelVersion:
    """
    Parse a kernel version string.

    Accepts the source directory form ('linux-5.10.1-gentoo') as well as
    the module directory form ('5.10.1-gentoo'). The string is split on
    '.' and '-'; the first token must be numeric. Minor and patch default
    to 0 when the following tokens are not numeric.

    Args:
        text: Version string, with or without a family prefix

    Returns:
        KernelVersion: Parsed version

    Raises:
        InvalidVersion: If the string is empty or has no numeric major component
    """
    if not text:
        raise InvalidVersion(text, "empty string")

    normalized = strip_family_prefix(text.strip())
    if not _NUMERIC.match(normalized[:1]):
        raise InvalidVersion(text)

    tokens = [token for token in _SEPARATORS.split(normalized) if token]
    if not tokens or not _NUMERIC.match(tokens[0]):
        raise InvalidVersion(text)

    numbers = [int(tokens.pop(0))]
    while len(numbers) < 3 and tokens and _NUMERIC.match(tokens[0]):
        numbers.append(int(tokens.pop(0)))
    numbers.extend([0] * (3 - len(numbers)))

    extra = tuple((bool(_NUMERIC.match(token)), token) for token in tokens)
    return KernelVersion(numbers[0], numbers[1], numbers[2], extra, normalized)


def compare(a: KernelVersion, b: KernelVersion) -> int:
    """
    Compare two kernel versions.

    Returns:
        int: -1 if a < b, 0 if equal, 1 if a > b
    """
    if a < b:
        return -1
    if a > b:
        return 1
    return 0
