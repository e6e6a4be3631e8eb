"""Unit tests for enrollment tracks, fast-track, relearn, transition and placement."""

from datetime import date, timedelta

import pytest

from mastery_core.engines.progression.errors import (
    PathwayError,
    ProgressInvariantError,
    ProgressNotFoundError,
)
from mastery_core.engines.progression.models import (
    EducationalStage,
    EnrollmentTrack,
    MasteryLevel,
    TransitionSource,
)
from mastery_core.engines.progression.pathway_router import (
    PathwayRouter,
    eligible_structures,
    transition_is_active,
)
from mastery_core.engines.progression.patches import LearnerProfilePatch, SubjectProgressPatch
from mastery_core.kernel.models.event_log import EventType


class TestTrack:
    async def test_change_track_touches_only_track(self, engine, learner, place, store):
        await place(learner, "math", MasteryLevel.E, lesson_index=4, is_fast_track=True)
        await place(learner, "art", MasteryLevel.B, lesson_index=9)
        before = {p.subject_id: p for p in await store.list_progress(learner.id)}

        updated = await engine.pathways.change_track(learner.id, EnrollmentTrack.UNIVERSITY)

        assert updated == 2
        assert (await store.get_learner(learner.id)).track == EnrollmentTrack.UNIVERSITY
        for progress in await store.list_progress(learner.id):
            old = before[progress.subject_id]
            assert progress.track == EnrollmentTrack.UNIVERSITY
            assert progress.revision == old.revision + 1
            assert progress.model_dump(exclude={"track", "revision"}) == old.model_dump(exclude={"track", "revision"})

    async def test_new_subjects_inherit_learner_track(self, engine, learner):
        await engine.pathways.change_track(learner.id, EnrollmentTrack.VOCATIONAL_SCHOOL)
        progress = await engine.get_progress(learner.id, "math")
        assert progress.track == EnrollmentTrack.VOCATIONAL_SCHOOL


class TestFastTrack:
    @pytest.mark.parametrize("duration", [5, 30, 180])
    async def test_allowed_durations(self, engine, learner, duration):
        progress = await engine.pathways.enable_fast_track(learner.id, "math", duration)
        assert progress.is_fast_track is True
        assert progress.fast_track_duration == duration

    @pytest.mark.parametrize("duration", [0, 20, 240])
    async def test_other_durations_rejected(self, engine, learner, duration):
        with pytest.raises(PathwayError):
            await engine.pathways.enable_fast_track(learner.id, "math", duration)

    async def test_disable_keeps_duration(self, engine, learner):
        await engine.pathways.enable_fast_track(learner.id, "math", 90)
        progress = await engine.pathways.disable_fast_track(learner.id, "math")
        assert progress.is_fast_track is False
        assert progress.fast_track_duration == 90

    async def test_fast_track_does_not_move_position(self, engine, learner, place):
        await place(learner, "math", MasteryLevel.G, lesson_index=6)
        progress = await engine.pathways.enable_fast_track(learner.id, "math", 45)
        assert (progress.level, progress.lesson_index) == (MasteryLevel.G, 6)


class TestRelearn:
    async def test_start_and_stop(self, engine, learner):
        progress = await engine.pathways.start_relearn(learner.id, "math", EducationalStage.HIGH)
        assert progress.relearn_active is True
        assert progress.relearn_stage == EducationalStage.HIGH

        progress = await engine.pathways.stop_relearn(learner.id, "math")
        assert progress.relearn_active is False
        assert progress.relearn_stage is None


class TestTransition:
    def test_eligibility_table(self):
        assert eligible_structures(6) == ["4-4-4", "6-3-3", "8-4"]
        assert eligible_structures(15) == ["6-3-3", "7-3", "8-3"]
        assert eligible_structures(9) == []

    async def test_enroll(self, engine, learner):
        saved = await engine.pathways.enroll_transition(learner.id, "8-3", TransitionSource.KUMON)
        enrollment = saved.transition
        assert enrollment.target_age == 12
        assert enrollment.target_structure == "8-3"
        assert enrollment.source_program == TransitionSource.KUMON
        assert enrollment.expires_on - enrollment.enrolled_on == timedelta(days=365)

    async def test_wrong_structure_for_age(self, engine, learner):
        with pytest.raises(PathwayError):
            await engine.pathways.enroll_transition(learner.id, "4-4-4")

    async def test_ineligible_age(self, engine, learner):
        await engine.update_learner(learner.id, LearnerProfilePatch(age=9))
        with pytest.raises(PathwayError):
            await engine.pathways.enroll_transition(learner.id, "6-3-3")

    async def test_enrollment_expires_after_a_year(self, store, registry, learner):
        router = PathwayRouter(store, registry, today=lambda: date(2026, 1, 1))
        saved = await router.enroll_transition(learner.id, "6-3-3")

        assert transition_is_active(saved, date(2026, 12, 31))
        assert not transition_is_active(saved, date(2027, 1, 1))


class TestPlacement:
    async def test_placement_resets_lesson_and_verification(self, engine, learner, place):
        await place(learner, "math", MasteryLevel.C, lesson_index=12, awaiting_verification=True)

        progress = await engine.pathways.apply_placement(learner.id, "math", MasteryLevel.H)

        assert progress.level == MasteryLevel.H
        assert progress.lesson_index == 1
        assert progress.is_placed is True
        assert progress.awaiting_verification is False

    async def test_placement_into_maintenance_level(self, engine, learner):
        progress = await engine.pathways.apply_placement(learner.id, "math", MasteryLevel.BEYOND_T)
        assert progress.level == MasteryLevel.BEYOND_T


class TestSubjectBookkeeping:
    async def test_specializations_are_cleaned(self, engine, learner):
        progress = await engine.pathways.set_specializations(
            learner.id, "math", [" algebra ", "geometry", "algebra", ""]
        )
        assert progress.specializations == ["algebra", "geometry"]

    async def test_media_is_orthogonal_to_lessons(self, engine, learner, place):
        await place(learner, "math", MasteryLevel.C, lesson_index=2)

        await engine.pathways.mark_media_complete(learner.id, "math", "video-1")
        progress = await engine.pathways.mark_media_complete(learner.id, "math", "video-1")

        assert progress.completed_media == ["video-1"]
        assert progress.lesson_index == 2
        assert progress.completed_exercises == []

    async def test_empty_media_id_rejected(self, engine, learner):
        with pytest.raises(ValueError):
            await engine.pathways.mark_media_complete(learner.id, "math", " ")

    async def test_remove_subject(self, engine, learner, place, store):
        await place(learner, "math", MasteryLevel.C)
        await engine.pathways.remove_subject(learner.id, "math")

        assert await store.get_progress(learner.id, "math") is None
        events = await engine.history(learner.id, "math")
        assert events[-1].event_type == EventType.SUBJECT_REMOVED

    async def test_remove_missing_subject(self, engine, learner):
        with pytest.raises(ProgressNotFoundError):
            await engine.pathways.remove_subject(learner.id, "math")

    async def test_every_change_is_logged(self, engine, learner):
        await engine.pathways.enable_fast_track(learner.id, "math", 15)
        await engine.pathways.start_relearn(learner.id, "math", EducationalStage.PRIMARY)
        types = [e.event_type for e in await engine.history(learner.id, "math")]
        assert types == [EventType.FAST_TRACK_ENABLED, EventType.RELEARN_STARTED]


class TestInvariantGuard:
    async def test_router_cannot_write_broken_records(self, engine, learner, place):
        """A relearn without a stage never reaches the store."""
        with pytest.raises(ProgressInvariantError):
            await engine.pathways._patch_subject(
                learner.id, "math", SubjectProgressPatch(relearn_active=True), EventType.RELEARN_STARTED
            )
