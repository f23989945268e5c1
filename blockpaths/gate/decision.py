"""Per-request allow/block decision for the path gate.

``PathGate`` holds the compiled RuleSet and the gate settings, both fixed at
construction. ``PathGate.evaluate()`` is a pure function of (escaped path,
headers): it performs no I/O beyond logging and mutates nothing, so one
instance is safely shared by every concurrent request.

Decision order:
  1. First rule (in list order) matching the escaped path. No match → ALLOW.
  2. Match → extract client addresses from forwarding headers.
  3. allow_local_requests and ANY extracted address is local → ALLOW.
  4. Otherwise → BLOCK with the configured status code.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from blockpaths.config import GateConfig
from blockpaths.constants import MAX_STATUS_CODE, MIN_STATUS_CODE
from blockpaths.gate.client_ip import ClientAddresses, extract_client_ips, is_local_address
from blockpaths.gate.rules import ConfigurationError, RuleSet, build_rule_set
from blockpaths.utils.logger import get_logger

logger = get_logger(__name__)


class Action(str, enum.Enum):
    ALLOW = "allow"
    BLOCK = "block"


@dataclass(frozen=True)
class GateDecision:
    """Outcome of one evaluation. Created per request and then discarded."""

    action: Action
    path: str
    status_code: Optional[int] = None
    matched_pattern: Optional[str] = None
    client_ips: ClientAddresses = ClientAddresses()
    local_override: bool = False

    @property
    def matched(self) -> bool:
        return self.matched_pattern is not None

    @property
    def blocked(self) -> bool:
        return self.action == Action.BLOCK


class PathGate:
    """Compiled gate: rule set + immutable settings.

    Construct with ``PathGate.from_config()``; construction raises
    ConfigurationError on an unusable configuration and no gate exists.
    """

    def __init__(
        self,
        rule_set: RuleSet,
        status_code: int,
        allow_local_requests: bool,
        name: str,
        log: Optional[Any] = None,
    ) -> None:
        self._rule_set = rule_set
        self._status_code = status_code
        self._allow_local_requests = allow_local_requests
        self._name = name
        self._log = log or logger

    @classmethod
    def from_config(cls, config: GateConfig, log: Optional[Any] = None) -> "PathGate":
        """Validate ``config`` and compile its patterns.

        Raises:
            ConfigurationError: status code out of range, empty pattern list,
                                or a pattern that does not compile.
        """
        if (
            isinstance(config.status_code, bool)
            or not isinstance(config.status_code, int)
            or not MIN_STATUS_CODE <= config.status_code <= MAX_STATUS_CODE
        ):
            raise ConfigurationError(
                f"invalid status code {config.status_code!r}: "
                f"expected an integer in {MIN_STATUS_CODE}..{MAX_STATUS_CODE}"
            )

        rule_set = build_rule_set(
            config.regex,
            status_code=config.status_code,
            silent_start_up=config.silent_start_up,
            log=log,
        )
        return cls(
            rule_set=rule_set,
            status_code=config.status_code,
            allow_local_requests=config.allow_local_requests,
            name=config.name,
            log=log,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def allow_local_requests(self) -> bool:
        return self._allow_local_requests

    @property
    def rule_set(self) -> RuleSet:
        return self._rule_set

    def evaluate(
        self,
        path: str,
        headers: Mapping[str, str],
        host: str = "",
        url: str = "",
    ) -> GateDecision:
        """Decide whether the request identified by ``path`` + ``headers`` is blocked.

        Args:
            path:    Escaped (percent-encoded) request path, no query string.
            headers: Case-insensitive request headers.
            host:    Request host — diagnostics only.
            url:     Full request URL — diagnostics only.

        Returns:
            GateDecision. ``status_code`` is set only for BLOCK decisions.
        """
        rule = self._rule_set.first_match(path)
        if rule is None:
            return GateDecision(action=Action.ALLOW, path=path)

        client_ips = extract_client_ips(headers)
        for error in client_ips.errors:
            self._log.warning(
                "Failed to parse forwarded client address",
                gate=self._name,
                header=error.header,
                token=error.token,
                error=error.reason,
            )

        if self._allow_local_requests and any(
            is_local_address(address) for address in client_ips.addresses
        ):
            return GateDecision(
                action=Action.ALLOW,
                path=path,
                matched_pattern=rule.pattern,
                client_ips=client_ips,
                local_override=True,
            )

        self._log.warning(
            "Request denied",
            gate=self._name,
            host=host,
            url=url,
            pattern=rule.pattern,
            client_ips=[str(address) for address in client_ips.addresses],
        )
        return GateDecision(
            action=Action.BLOCK,
            path=path,
            status_code=self._status_code,
            matched_pattern=rule.pattern,
            client_ips=client_ips,
        )
