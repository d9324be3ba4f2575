"""
Password strength scoring and password policy enforcement.

Two independent tools share one requirements shape:

- evaluate_strength(): a soft heuristic that scores a password 0-4 and
  explains what is wrong with it. Never raises; meant for live feedback.
- build_password_schema(): a hard pass/fail gate that rejects passwords not
  meeting the policy, reporting every violated rule at once.

Scoring is additive. Every check runs regardless of earlier findings, and
feedback is reported in the order the checks run:

    common password -> length -> character classes -> personal info
    -> repeating characters -> sequential characters

Points: up to 2 for length (minimum reached, then a bonus for a generous
margin) and up to 2 for character variety (half a point per satisfied
class). A password is strong when it scores at least 3 and produced no
feedback at all.
"""
import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Union

from .config import PASSWORD_MIN_LENGTH

MAX_SCORE = 4
STRONG_SCORE = 3

# Extra characters beyond min_length that earn the length bonus
LENGTH_BONUS_MARGIN = 8

# Minimum run lengths flagged by the sequential check. Digit runs need one
# more character so the ubiquitous "...123" suffix alone is not flagged.
SEQUENCE_MIN_LETTERS = 3
SEQUENCE_MIN_DIGITS = 4

REPEAT_MIN_RUN = 3

# Shortest email/name fragment considered identifying
PERSONAL_TOKEN_MIN_LENGTH = 3

COMMON_PASSWORDS = frozenset({
    "password",
    "password1",
    "password123",
    "passw0rd",
    "p@ssw0rd",
    "123456",
    "1234567",
    "12345678",
    "123456789",
    "1234567890",
    "1234",
    "12345",
    "123123",
    "111111",
    "000000",
    "654321",
    "qwerty",
    "qwerty123",
    "qwertyuiop",
    "1q2w3e4r",
    "asdfgh",
    "zxcvbnm",
    "abc123",
    "admin",
    "admin123",
    "administrator",
    "root",
    "toor",
    "pass",
    "test",
    "guest",
    "master",
    "letmein",
    "welcome",
    "welcome1",
    "welcome123",
    "hello",
    "hello123",
    "monkey",
    "dragon",
    "sunshine",
    "princess",
    "football",
    "baseball",
    "iloveyou",
    "trustno1",
    "changeme",
    "secret",
    "login",
})

_UPPERCASE = re.compile(r"[A-Z]")
_LOWERCASE = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
_SPECIAL = re.compile(r"[^A-Za-z0-9]")
_REPEAT = re.compile(r"(.)\1{%d,}" % (REPEAT_MIN_RUN - 1), re.DOTALL)
_LETTER_RUN = re.compile(r"[a-z]+")
_DIGIT_RUN = re.compile(r"[0-9]+")
_TRAILING_SYMBOLS = re.compile(r"[\W_]+$")
_TRAILING_DECORATION = re.compile(r"[\W\d_]+$")
_EMAIL_SEPARATORS = re.compile(r"[._+\-]+")
_WHITESPACE = re.compile(r"\s+")


# ============================================
# Types
# ============================================

@dataclass(frozen=True)
class PasswordRequirements:
    """
    Password policy.

    The four ``require_*`` flags drive both the scorer and the schema; the
    ``prevent_*`` flags switch individual heuristic checks off.
    """
    min_length: int = PASSWORD_MIN_LENGTH
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special_chars: bool = True
    prevent_common_passwords: bool = True
    prevent_user_info: bool = True
    prevent_repeating_chars: bool = True
    prevent_sequential_chars: bool = True


DEFAULT_PASSWORD_REQUIREMENTS = PasswordRequirements()


@dataclass(frozen=True)
class UserContext:
    """Personal details a password should not contain. Never persisted."""
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class PasswordStrengthResult:
    """Outcome of evaluate_strength()."""
    score: int
    is_strong: bool
    feedback: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


class PasswordValidationError(ValueError):
    """Raised by PasswordSchema.parse() with every violated rule."""

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))


# ============================================
# Individual checks
# ============================================

def is_common_password(password: str) -> bool:
    """
    Check a password against the denylist.

    Matches case-insensitively, either exactly or once trailing decoration
    is removed: first symbols only ("123456!" -> "123456"), then digits and
    symbols together ("Password123!" -> "password").
    """
    lowered = password.lower()
    if lowered in COMMON_PASSWORDS:
        return True
    for pattern in (_TRAILING_SYMBOLS, _TRAILING_DECORATION):
        stem = pattern.sub("", lowered)
        if stem and stem in COMMON_PASSWORDS:
            return True
    return False


def has_repeating_chars(password: str) -> bool:
    """True if any character repeats 3+ times in a row ("sss")."""
    return bool(_REPEAT.search(password))


def _longest_step_run(chars: str) -> int:
    """Length of the longest run whose code points move by a constant +1 or -1."""
    if not chars:
        return 0
    longest = run = 1
    step = 0
    for prev, cur in zip(chars, chars[1:]):
        diff = ord(cur) - ord(prev)
        if diff in (1, -1):
            run = run + 1 if run == 1 or diff == step else 2
        else:
            run = 1
        step = diff
        longest = max(longest, run)
    return longest


def has_sequential_chars(password: str) -> bool:
    """True for alphabet runs like "abc"/"cba" or digit runs like "1234"/"4321"."""
    lowered = password.lower()
    for pattern, min_run in (
        (_LETTER_RUN, SEQUENCE_MIN_LETTERS),
        (_DIGIT_RUN, SEQUENCE_MIN_DIGITS),
    ):
        for match in pattern.finditer(lowered):
            if _longest_step_run(match.group()) >= min_run:
                return True
    return False


def _personal_tokens(value: Optional[str], separators: "re.Pattern[str]") -> List[str]:
    if not value:
        return []
    return [
        token for token in separators.split(value.lower())
        if len(token) >= PERSONAL_TOKEN_MIN_LENGTH
    ]


def _contains_any(password_lower: str, tokens: List[str]) -> bool:
    return any(token in password_lower for token in tokens)


def _missing_classes(password: str, requirements: PasswordRequirements) -> List[str]:
    """Names of enabled character classes absent from the password."""
    checks = (
        ("uppercase", requirements.require_uppercase, _UPPERCASE),
        ("lowercase", requirements.require_lowercase, _LOWERCASE),
        ("numbers", requirements.require_numbers, _DIGIT),
        ("special", requirements.require_special_chars, _SPECIAL),
    )
    return [name for name, enabled, pattern in checks if enabled and not pattern.search(password)]


def _enabled_class_count(requirements: PasswordRequirements) -> int:
    return sum((
        requirements.require_uppercase,
        requirements.require_lowercase,
        requirements.require_numbers,
        requirements.require_special_chars,
    ))


_CLASS_FEEDBACK = {
    "uppercase": ("Add uppercase letters", "Add an uppercase letter (A-Z)"),
    "lowercase": ("Add lowercase letters", "Add a lowercase letter (a-z)"),
    "numbers": ("Add numbers", "Add a number (0-9)"),
    "special": ("Add special characters", "Add a special character (!@#$%^&*)"),
}

_CLASS_VIOLATIONS = {
    "uppercase": "Password must contain at least one uppercase letter",
    "lowercase": "Password must contain at least one lowercase letter",
    "numbers": "Password must contain at least one number",
    "special": "Password must contain at least one special character",
}


# ============================================
# Strength evaluation
# ============================================

def _coerce_context(
    user_context: Union[UserContext, Mapping[str, Optional[str]], None],
) -> Optional[UserContext]:
    if user_context is None or isinstance(user_context, UserContext):
        return user_context
    return UserContext(email=user_context.get("email"), name=user_context.get("name"))


def evaluate_strength(
    password: str,
    requirements: Optional[PasswordRequirements] = None,
    user_context: Union[UserContext, Mapping[str, Optional[str]], None] = None,
) -> PasswordStrengthResult:
    """
    Score a password and explain its weaknesses.

    Args:
        password: Candidate password. Length is scored, never rejected.
        requirements: Policy to score against (defaults apply if None).
        user_context: Optional email/name (UserContext or plain dict) that
            the password must not contain.

    Returns:
        PasswordStrengthResult with score 0-4, is_strong, and ordered feedback.
    """
    password = password or ""
    requirements = requirements or DEFAULT_PASSWORD_REQUIREMENTS
    context = _coerce_context(user_context)

    feedback: List[str] = []
    suggestions: List[str] = []

    def flag(message: str, suggestion: str) -> None:
        if message not in feedback:
            feedback.append(message)
            suggestions.append(suggestion)

    points = 0

    # 1. Denylist
    common = requirements.prevent_common_passwords and is_common_password(password)
    if common:
        flag("This password is too common", "Choose a more unique password")

    # 2. Length
    length_points = 0
    if len(password) >= requirements.min_length:
        length_points += 1
        if len(password) >= requirements.min_length + LENGTH_BONUS_MARGIN:
            length_points += 1
    else:
        missing = requirements.min_length - len(password)
        flag(
            f"Password must be at least {requirements.min_length} characters long",
            f"Add {missing} more characters",
        )

    # 3. Character classes
    missing_classes = _missing_classes(password, requirements)
    for name in missing_classes:
        flag(*_CLASS_FEEDBACK[name])
    satisfied = _enabled_class_count(requirements) - len(missing_classes)
    variety_points = satisfied // 2

    if not common:
        points += length_points + variety_points

    # 4. Personal information
    if requirements.prevent_user_info and context is not None:
        lowered = password.lower()
        email_local = context.email.split("@", 1)[0] if context.email else None
        if _contains_any(lowered, _personal_tokens(email_local, _EMAIL_SEPARATORS)):
            flag("Password should not contain your email", "Avoid using personal information")
        if _contains_any(lowered, _personal_tokens(context.name, _WHITESPACE)):
            flag("Password should not contain your name", "Avoid using personal information")

    # 5. Repeats
    if requirements.prevent_repeating_chars and has_repeating_chars(password):
        flag("Avoid repeating characters", "Replace repeated characters with different ones")

    # 6. Sequences
    if requirements.prevent_sequential_chars and has_sequential_chars(password):
        flag("Avoid sequential characters", "Replace sequential characters with random ones")

    score = max(0, min(MAX_SCORE, points))
    return PasswordStrengthResult(
        score=score,
        is_strong=score >= STRONG_SCORE and not feedback,
        feedback=feedback,
        suggestions=suggestions,
    )


# ============================================
# Policy schema
# ============================================

class PasswordSchema:
    """
    Pass/fail password policy built from PasswordRequirements.

    Independent of evaluate_strength(): only hard rules are enforced here.
    Instances are callable, so they can be used directly as a pydantic
    ``AfterValidator``.
    """

    def __init__(self, requirements: Optional[PasswordRequirements] = None):
        self.requirements = requirements or DEFAULT_PASSWORD_REQUIREMENTS

    def violations(self, password: str) -> List[str]:
        """List every rule the password breaks (empty if valid)."""
        req = self.requirements
        password = password or ""
        problems = []

        if len(password) < req.min_length:
            problems.append(f"Password must be at least {req.min_length} characters")

        for name in _missing_classes(password, req):
            problems.append(_CLASS_VIOLATIONS[name])

        if req.prevent_common_passwords and password.lower() in COMMON_PASSWORDS:
            problems.append("This password is too common")

        if req.prevent_repeating_chars and has_repeating_chars(password):
            problems.append("Password should not contain repeating characters")

        return problems

    def parse(self, password: str) -> str:
        """
        Validate a password.

        Returns:
            The password unchanged.

        Raises:
            PasswordValidationError: Listing all violated rules.
        """
        problems = self.violations(password)
        if problems:
            raise PasswordValidationError(problems)
        return password

    def is_valid(self, password: str) -> bool:
        return not self.violations(password)

    __call__ = parse


def build_password_schema(requirements: Optional[PasswordRequirements] = None) -> PasswordSchema:
    """Build a PasswordSchema for the given requirements (defaults if None)."""
    return PasswordSchema(requirements)
