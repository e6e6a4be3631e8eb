"""Unit tests for certificate issuance and verification ids."""

from datetime import date

import pytest

from mastery_core.engines.progression.certificate_issuer import (
    CertificateIssuer,
    resolve_program_type,
    to_base36,
)
from mastery_core.engines.progression.models import PerformanceSample, ProgramType


def _fixed_issuer(ms: int = 1_700_000_000_000) -> CertificateIssuer:
    return CertificateIssuer(clock_ms=lambda: ms, today=lambda: date(2026, 3, 2))


class TestProgramType:
    def test_precedence(self):
        assert resolve_program_type(True, True, True) == ProgramType.TRANSITION
        assert resolve_program_type(False, True, True) == ProgramType.RELEARN
        assert resolve_program_type(False, False, True) == ProgramType.FAST_TRACK
        assert resolve_program_type(False, False, False) == ProgramType.REGULAR


class TestVerificationId:
    @pytest.mark.parametrize(
        "program_type,prefix",
        [
            (ProgramType.TRANSITION, "TRN-"),
            (ProgramType.RELEARN, "RLN-"),
            (ProgramType.FAST_TRACK, "CERT-"),
            (ProgramType.REGULAR, "CERT-"),
        ],
    )
    def test_prefix(self, program_type, prefix):
        cert = _fixed_issuer().issue("Math", "C", PerformanceSample(correct=7, total=10), program_type, "Ada")
        assert cert.verification_id.startswith(prefix)

    def test_token_is_uppercase_base36_of_ms(self):
        cert = _fixed_issuer(1_700_000_000_000).issue(
            "Math", "C", PerformanceSample(correct=7, total=10), ProgramType.REGULAR, "Ada"
        )
        token = cert.verification_id.split("-", 1)[1]
        assert int(token, 36) == 1_700_000_000_000
        assert token == token.upper()

    def test_ids_strictly_increase_under_a_frozen_clock(self):
        issuer = _fixed_issuer()
        sample = PerformanceSample(correct=7, total=10)
        tokens = [
            int(issuer.issue("Math", "C", sample, ProgramType.REGULAR, "Ada").verification_id.split("-")[1], 36)
            for _ in range(5)
        ]
        assert tokens == sorted(set(tokens))

    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "Z"
        assert to_base36(36) == "10"


class TestCertificateContents:
    def test_fields(self):
        cert = _fixed_issuer().issue("Mathematics", "C", PerformanceSample(correct=7, total=10), ProgramType.REGULAR, "Ada")
        assert cert.subject_name == "Mathematics"
        assert cert.level == "C"
        assert cert.learner_name == "Ada"
        assert cert.issued_on == date(2026, 3, 2)
        assert cert.score == 70
        assert cert.grade_tier == "medium-high"
        assert cert.career_readiness == "intermediate-role-ready"

    def test_certificate_is_immutable(self):
        cert = _fixed_issuer().issue("Math", "C", PerformanceSample(correct=7, total=10), ProgramType.REGULAR, "Ada")
        with pytest.raises(Exception):
            cert.score = 100
