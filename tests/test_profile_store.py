"""Tests for the learner profile repository and the service facade."""

import threading

import pytest

from english_learning_engine.engine.service import AdaptiveLearningService
from english_learning_engine.exceptions import InvalidObservationError
from english_learning_engine.models.learner import (
    DEFAULT_SKILL_LEVELS,
    DifficultyLevel,
    LearnerProfile,
    LearningSpeed,
    PerformanceMetrics,
    SkillTag,
)
from english_learning_engine.storage import profile_store
from english_learning_engine.storage.profile_store import (
    InMemoryProfileStorage,
    JsonProfileStorage,
    LearnerProfileStore,
)


@pytest.fixture
def store():
    return LearnerProfileStore(InMemoryProfileStorage())


def _observation(**overrides):
    data = {
        "activityType": "grammar",
        "accuracyRate": 92,
        "completionTime": 40,
        "expectedTime": 60,
    }
    data.update(overrides)
    return data


class TestLearnerProfileStore:
    def test_creates_default_profile(self, store):
        profile = store.get_or_create("new_user")
        assert profile.user_id == "new_user"
        assert profile.skill_levels == DEFAULT_SKILL_LEVELS
        assert profile.preferred_difficulty == DifficultyLevel.INTERMEDIATE
        assert profile.adaptive_mode is True
        assert profile.learning_speed == LearningSpeed.NORMAL
        assert profile.recent_performance == []

    def test_same_object_returned(self, store):
        assert store.get_or_create("u1") is store.get_or_create("u1")

    def test_defaults_are_not_shared(self, store):
        a = store.get_or_create("a")
        b = store.get_or_create("b")
        a.skill_levels[SkillTag.GRAMMAR] = 99.0
        assert b.skill_levels[SkillTag.GRAMMAR] == 45.0

    def test_evict_reloads_from_storage(self, store):
        profile = store.get_or_create("u1")
        profile.skill_levels[SkillTag.READING] = 77.0
        store.save(profile)
        store.evict("u1")
        reloaded = store.get_or_create("u1")
        assert reloaded is not profile
        assert reloaded.skill_levels[SkillTag.READING] == 77.0

    def test_update_preferences(self, store):
        profile = store.update_preferences(
            "u1",
            preferred_difficulty=DifficultyLevel.EXPERT,
            adaptive_mode=False,
        )
        assert profile.preferred_difficulty == DifficultyLevel.EXPERT
        assert profile.adaptive_mode is False
        assert profile.learning_speed == LearningSpeed.NORMAL

    def test_corrupt_storage_falls_back_to_defaults(self, tmp_path):
        storage = JsonProfileStorage(tmp_path)
        storage.get_profile_path("broken").write_text("{not json")
        profile = LearnerProfileStore(storage).get_or_create("broken")
        assert profile.skill_levels == DEFAULT_SKILL_LEVELS


class TestJsonProfileStorage:
    def test_missing_file_returns_none(self, tmp_path):
        assert JsonProfileStorage(tmp_path).load("nobody") is None

    def test_save_and_load(self, tmp_path):
        storage = JsonProfileStorage(tmp_path)
        store = LearnerProfileStore(storage)
        profile = store.get_or_create("u1")
        profile.append_performance(
            PerformanceMetrics(
                activity_type=SkillTag.LISTENING,
                accuracy_rate=80,
                completion_time=30,
                expected_time=45,
            )
        )
        profile.skill_levels[SkillTag.LISTENING] = 58.5
        store.save(profile)

        assert storage.get_profile_path("u1").exists()
        loaded = storage.load("u1")
        assert loaded.skill_levels[SkillTag.LISTENING] == 58.5
        assert loaded.recent_performance[0].activity_type == SkillTag.LISTENING
        assert loaded.recent_performance[0].expected_time == 45

    def test_save_leaves_no_temp_files(self, tmp_path):
        storage = JsonProfileStorage(tmp_path)
        store = LearnerProfileStore(storage)
        store.save(store.get_or_create("u1"))
        store.save(store.get_or_create("u1"))
        assert [p.name for p in tmp_path.iterdir()] == ["u1.json"]

    def test_failed_write_removes_temp_file(self, tmp_path, monkeypatch):
        storage = JsonProfileStorage(tmp_path)

        def failing_dump(obj, fp):
            fp.write("{\"partial\": ")
            raise OSError("disk full")

        monkeypatch.setattr(profile_store.json, "dump", failing_dump)
        with pytest.raises(OSError, match="disk full"):
            storage.save(LearnerProfile(user_id="u1"))
        assert list(tmp_path.iterdir()) == []

    def test_delete(self, tmp_path):
        storage = JsonProfileStorage(tmp_path)
        LearnerProfileStore(storage).save(LearnerProfileStore(storage).get_or_create("u1"))
        storage.delete("u1")
        assert storage.load("u1") is None


class TestAdaptiveLearningService:
    def test_record_performance_updates_level(self, store):
        service = AdaptiveLearningService(store)
        assert service.record_performance("u1", _observation()) == 51.0
        profile = service.get_learner_profile("u1")
        assert profile.skill_levels[SkillTag.GRAMMAR] == 51.0
        assert len(profile.recent_performance) == 1

    def test_record_performance_persists(self):
        storage = InMemoryProfileStorage()
        service = AdaptiveLearningService(LearnerProfileStore(storage))
        service.record_performance("u1", _observation())
        assert storage.load("u1").skill_levels[SkillTag.GRAMMAR] == 51.0

    def test_invalid_observation_leaves_profile_untouched(self, store):
        service = AdaptiveLearningService(store)
        with pytest.raises(InvalidObservationError):
            service.record_performance("u1", _observation(accuracyRate=-5))
        assert service.get_learner_profile("u1").recent_performance == []

    def test_concurrent_updates_keep_history_bounded(self, store):
        service = AdaptiveLearningService(store, history_limit=20)

        def worker():
            for _ in range(25):
                service.record_performance("shared", _observation())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        profile = service.get_learner_profile("shared")
        assert len(profile.recent_performance) == 20
        assert profile.skill_levels[SkillTag.GRAMMAR] == 100.0

    def test_evaluate_all_only_active_skills(self, store):
        service = AdaptiveLearningService(store)
        service.record_performance("u1", _observation())
        evaluations = service.evaluate_all("u1")
        assert list(evaluations) == [SkillTag.GRAMMAR]
        assert evaluations[SkillTag.GRAMMAR].overall_score == 92.0

    def test_area_summary(self, store):
        summary = AdaptiveLearningService(store).get_learner_area_summary("u1")
        assert "speaking" in summary.struggles
