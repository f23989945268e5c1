"""Rule set compilation for the path gate.

``build_rule_set()`` is the ONLY way to obtain a ``RuleSet``. It compiles the
configured pattern list once, at startup, and either returns a complete
immutable rule set or raises ``ConfigurationError``. A partially compiled rule
set is never returned.

IMPORT RULES:
  - ``import re2`` ONLY for rule patterns. Rules are written for an RE2
    engine (the Traefik block-paths dialect) and must not
    backtrack catastrophically on hostile paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

import re2  # google-re2 — NOT stdlib re

from blockpaths.utils.logger import get_logger

logger = get_logger(__name__)


class ConfigurationError(ValueError):
    """Raised at construction time when the gate configuration is unusable."""


@dataclass(frozen=True)
class CompiledRule:
    """One compiled pattern plus its source text (kept for diagnostics)."""

    pattern: str
    regex: Any  # re2._Regexp

    def matches(self, path: str) -> bool:
        return self.regex.search(path) is not None


@dataclass(frozen=True)
class RuleSet:
    """Ordered, immutable collection of compiled rules.

    INVARIANT: non-empty. Shared read-only by every concurrent request.
    """

    rules: tuple[CompiledRule, ...]

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def patterns(self) -> list[str]:
        return [rule.pattern for rule in self.rules]

    def first_match(self, path: str) -> Optional[CompiledRule]:
        """Return the first rule matching ``path`` in list order, or None."""
        for rule in self.rules:
            if rule.matches(path):
                return rule
        return None


def build_rule_set(
    patterns: Sequence[str],
    status_code: int,
    silent_start_up: bool = True,
    log: Optional[Any] = None,
) -> RuleSet:
    """Compile ``patterns`` into a RuleSet, preserving their order.

    Args:
        patterns:        Regex source strings (RE2 syntax), at least one.
        status_code:     Block status code; only reported in the startup log.
        silent_start_up: When False, log the resolved pattern list and status code.
        log:             structlog logger to use (defaults to this module's logger).

    Returns:
        RuleSet with one CompiledRule per pattern.

    Raises:
        ConfigurationError: Empty list, non-string entry, or a pattern that does
                            not compile. The message names the offending pattern.
    """
    log = log or logger

    if not patterns:
        raise ConfigurationError("the regex list is empty")

    if not silent_start_up:
        log.info(
            "Block paths rules loaded",
            regex=list(patterns),
            status_code=status_code,
        )

    compiled: list[CompiledRule] = []
    for pattern in patterns:
        if not isinstance(pattern, str):
            raise ConfigurationError(
                f"error compiling regex {pattern!r}: pattern must be a string, "
                f"got {type(pattern).__name__}"
            )
        try:
            regex = re2.compile(pattern)
        except re2.error as exc:
            raise ConfigurationError(f"error compiling regex {pattern!r}: {exc}") from exc
        compiled.append(CompiledRule(pattern=pattern, regex=regex))

    return RuleSet(rules=tuple(compiled))
