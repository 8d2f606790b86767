"""
auth/password_policy.py -- Fixed password strength rules.

Every rule is checked independently and all violations are reported, in
rule order, so a form can show the full list at once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from auth.errors import WeakPassword

MIN_LENGTH = 8
SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

_SPECIAL_RE = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")

# (rule name, check, message) in reporting order.
_RULES = (
    ("min_length", lambda p: len(p) >= MIN_LENGTH, f"Password must be at least {MIN_LENGTH} characters long"),
    ("uppercase", lambda p: re.search(r"[A-Z]", p) is not None, "Password must contain at least one uppercase letter"),
    ("lowercase", lambda p: re.search(r"[a-z]", p) is not None, "Password must contain at least one lowercase letter"),
    ("digit", lambda p: re.search(r"[0-9]", p) is not None, "Password must contain at least one number"),
    ("special", lambda p: _SPECIAL_RE.search(p) is not None, "Password must contain at least one special character"),
)

RULE_MESSAGES: dict[str, str] = {name: message for name, _check, message in _RULES}


@dataclass(frozen=True)
class PasswordCheck:
    valid: bool
    violations: list[str] = field(default_factory=list)

    @property
    def messages(self) -> list[str]:
        return [RULE_MESSAGES[name] for name in self.violations]


def validate(password: str) -> PasswordCheck:
    """Check password against every rule and return all violations."""
    violations = [name for name, check, _message in _RULES if not check(password)]
    return PasswordCheck(valid=not violations, violations=violations)


def ensure_strong(password: str) -> None:
    """Raise WeakPassword listing every violated rule, or return None."""
    result = validate(password)
    if not result.valid:
        raise WeakPassword(result.violations)
