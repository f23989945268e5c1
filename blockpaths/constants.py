"""Shared constants for blockpaths.

Header names, defaults and numeric limits used across modules live here.
"""

# ─── Gate defaults ────────────────────────────────────────────────────────────

# Status code written when a request path matches a rule.
DEFAULT_STATUS_CODE: int = 403

# Name reported in block diagnostics when none is configured.
DEFAULT_GATE_NAME: str = "block-paths"

# Valid range for a configured status code (inclusive).
MIN_STATUS_CODE: int = 100
MAX_STATUS_CODE: int = 599

# ─── Forwarding headers ───────────────────────────────────────────────────────

# Read in this order; addresses from X-Forwarded-For precede X-Real-IP.
FORWARDED_FOR_HEADER: str = "X-Forwarded-For"
REAL_IP_HEADER: str = "X-Real-IP"

# ─── Proxy ────────────────────────────────────────────────────────────────────

DEFAULT_PROXY_HOST: str = "127.0.0.1"
DEFAULT_PROXY_PORT: int = 8000
