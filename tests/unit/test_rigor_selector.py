"""Unit tests for adaptive rigor banding."""

import pytest

from mastery_core.engines.progression.models import PerformanceSample
from mastery_core.engines.progression.rigor_selector import (
    RigorBand,
    band_for_momentum,
    directive_text,
    select_directive,
)


class TestRigorSelector:
    @pytest.mark.parametrize(
        "correct,total,band",
        [
            (10, 10, RigorBand.STRETCH),
            (9, 10, RigorBand.STRETCH),
            (8, 10, RigorBand.STEADY),
            (7, 10, RigorBand.STEADY),
            (69, 100, RigorBand.REINFORCEMENT),
            (5, 10, RigorBand.REINFORCEMENT),
            (4, 10, RigorBand.REMEDIATION),
            (0, 10, RigorBand.REMEDIATION),
        ],
    )
    def test_bands(self, correct, total, band):
        assert select_directive(PerformanceSample(correct=correct, total=total)) == band

    def test_boundary_point_seven_is_steady(self):
        """Lower bounds are inclusive."""
        assert band_for_momentum(0.7) == RigorBand.STEADY
        assert band_for_momentum(0.6999) == RigorBand.REINFORCEMENT

    def test_missing_sample_defaults_to_steady(self):
        assert select_directive(None) == RigorBand.STEADY

    @pytest.mark.parametrize(
        "band,phrases",
        [
            (RigorBand.STRETCH, ["reduce scaffolding", "abstraction", "synthesis-level"]),
            (RigorBand.STEADY, ["standard rigor", "1-2 stretch problems"]),
            (RigorBand.REINFORCEMENT, ["application-focused", "concrete examples", "no difficulty increase"]),
            (RigorBand.REMEDIATION, ["recall and understanding only", "maximal scaffolding"]),
        ],
    )
    def test_every_band_has_directive_text(self, band, phrases):
        text = directive_text(band).lower()
        for phrase in phrases:
            assert phrase in text
