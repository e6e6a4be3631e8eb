"""
Certificate Issuer - builds immutable completion certificates.

Verification ids are "<PREFIX>-<token>", where the token is the issuance time in
milliseconds rendered in upper-case base 36. Tokens are strictly increasing per issuer.
"""

import string
import threading
import time
from datetime import date
from typing import Callable, Optional

from mastery_core.engines.progression.grader import Grader
from mastery_core.engines.progression.models import (
    Certificate,
    PerformanceSample,
    ProgramType,
)
from mastery_core.logging_config import get_logger

logger = get_logger(__name__)

_BASE36_DIGITS = string.digits + string.ascii_uppercase

_PREFIXES = {
    ProgramType.TRANSITION: "TRN",
    ProgramType.RELEARN: "RLN",
}
DEFAULT_PREFIX = "CERT"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("Base 36 token must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def resolve_program_type(
    is_transition: bool,
    is_relearn: bool,
    is_fast_track: bool,
) -> ProgramType:
    """Precedence: transition > relearn > fast-track > regular."""
    if is_transition:
        return ProgramType.TRANSITION
    if is_relearn:
        return ProgramType.RELEARN
    if is_fast_track:
        return ProgramType.FAST_TRACK
    return ProgramType.REGULAR


def prefix_for(program_type: ProgramType) -> str:
    return _PREFIXES.get(program_type, DEFAULT_PREFIX)


class CertificateIssuer:
    """
    Issues certificates with unique, time-ordered verification ids.

    Usage:
        issuer = CertificateIssuer()
        cert = issuer.issue("Mathematics", "C", sample, ProgramType.REGULAR, "Ada")
    """

    def __init__(
        self,
        clock_ms: Optional[Callable[[], int]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self._clock_ms = clock_ms or (lambda: time.time_ns() // 1_000_000)
        self._today = today or date.today
        self._last_token = -1
        self._lock = threading.Lock()

    def _next_token(self) -> int:
        with self._lock:
            token = max(self._clock_ms(), self._last_token + 1)
            self._last_token = token
            return token

    def issue(
        self,
        subject_name: str,
        level: str,
        sample: PerformanceSample,
        program_type: ProgramType,
        learner_name: str,
    ) -> Certificate:
        skill_points = sample.skill_points
        verification_id = f"{prefix_for(program_type)}-{to_base36(self._next_token())}"
        certificate = Certificate(
            subject_name=subject_name,
            level=level,
            issued_on=self._today(),
            learner_name=learner_name,
            program_type=program_type,
            verification_id=verification_id,
            score=skill_points,
            grade_tier=Grader.grade_tier(skill_points),
            career_readiness=Grader.career_readiness(skill_points),
        )
        logger.info(
            "Certificate issued",
            extra={
                "verification_id": verification_id,
                "program_type": program_type.value,
                "certificate_level": level,
            },
        )
        return certificate
