"""
Write Guardian: Restricts tenant writes to the directory settings endpoints.
Validates every outbound request, blocks writes anywhere else, and records
intended writes when running in what-if mode.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("m365_group_settings.safety")

# ─── Write Scope ─────────────────────────────────────────────────────────────

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# The only endpoints this tool is allowed to change
ALLOWED_WRITE_ENDPOINTS = {
    "POST": [re.compile(r"/groupSettings$", re.IGNORECASE)],
    "PATCH": [re.compile(r"/groupSettings/[^/?]+$", re.IGNORECASE)],
    "DELETE": [re.compile(r"/groupSettings/[^/?]+$", re.IGNORECASE)],
}


class SafetyViolation(Exception):
    """Raised when a write outside the settings endpoints is attempted."""
    pass


class WriteGuardian:
    """
    Validates every outbound HTTP request before it is sent.
    Reads are always allowed; writes only to /groupSettings.
    In what-if mode allowed writes are recorded and not sent.
    """

    def __init__(self, what_if: bool = False):
        self.what_if = what_if
        self.violations: list[dict] = []
        self.planned_writes: list[dict] = []
        self.checks_performed: int = 0
        self.started_at: str = _utc_now()

    def validate_request(self, method: str, url: str, body: Optional[dict] = None) -> bool:
        """
        Validate a request.
        Returns True if it should be sent, False if it was recorded as a
        what-if write. Raises SafetyViolation for writes outside the scope.
        """
        self.checks_performed += 1
        method_upper = method.upper()

        if method_upper in ("GET", "HEAD", "OPTIONS"):
            return True

        path = url.split("?", 1)[0]
        patterns = ALLOWED_WRITE_ENDPOINTS.get(method_upper, [])
        if not any(p.search(path) for p in patterns):
            self._record_violation(method_upper, url, "Write outside settings endpoints")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Write blocked: {method_upper} {url}"
            )

        if self.what_if:
            self.planned_writes.append({
                "timestamp": _utc_now(),
                "method": method_upper,
                "url": url,
                "body": body,
            })
            logger.info(f"What-if: skipped {method_upper} {url}")
            return False

        return True

    def _record_violation(self, method: str, url: str, reason: str):
        """Record a safety violation for audit."""
        violation = {
            "timestamp": _utc_now(),
            "method": method,
            "url": url,
            "reason": reason,
        }
        self.violations.append(violation)
        logger.critical(f"SAFETY VIOLATION: {reason} ({method} {url})")

    def get_audit_record(self) -> dict:
        """Return the audit record of this run."""
        return {
            "write_guardian": {
                "mode": "WHAT-IF" if self.what_if else "LIVE",
                "started_at": self.started_at,
                "checks_performed": self.checks_performed,
                "planned_writes": self.planned_writes,
                "violations_detected": len(self.violations),
                "violations": self.violations,
            }
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
