"""Learner profile repository with pluggable persistence."""

import fcntl
import json
import os
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Protocol

import structlog

from english_learning_engine.models.learner import (
    DifficultyLevel,
    LearnerProfile,
    LearningSpeed,
)

logger = structlog.get_logger()


class ProfileStorage(Protocol):
    """Persistence backend for learner profiles."""

    def load(self, user_id: str) -> LearnerProfile | None: ...

    def save(self, profile: LearnerProfile) -> None: ...

    def delete(self, user_id: str) -> None: ...


class InMemoryProfileStorage:
    """Keeps serialized profiles in a dict. Useful for tests and single-process runs."""

    def __init__(self) -> None:
        self._data: dict[str, dict] = {}

    def load(self, user_id: str) -> LearnerProfile | None:
        data = self._data.get(user_id)
        if data is None:
            return None
        return LearnerProfile.model_validate(data)

    def save(self, profile: LearnerProfile) -> None:
        self._data[profile.user_id] = profile.model_dump(mode="json")

    def delete(self, user_id: str) -> None:
        self._data.pop(user_id, None)


class JsonProfileStorage:
    """One JSON file per user (fcntl.flock + atomic write).

    Args:
        profiles_dir: Directory holding ``<user_id>.json`` files.
    """

    def __init__(self, profiles_dir: Path):
        self.profiles_dir = profiles_dir
        self.profiles_dir.mkdir(parents=True, exist_ok=True)

    def get_profile_path(self, user_id: str) -> Path:
        return self.profiles_dir / f"{user_id}.json"

    def load(self, user_id: str) -> LearnerProfile | None:
        path = self.get_profile_path(user_id)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            data = json.load(f)
            fcntl.flock(f, fcntl.LOCK_UN)
        return LearnerProfile.model_validate(data)

    def save(self, profile: LearnerProfile) -> None:
        path = self.get_profile_path(profile.user_id)
        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, delete=False, suffix=".json", encoding="utf-8"
        ) as tmp:
            try:
                json.dump(profile.model_dump(mode="json"), tmp)
            except BaseException:
                tmp.close()
                os.unlink(tmp.name)
                raise
        os.replace(tmp.name, path)

    def delete(self, user_id: str) -> None:
        self.get_profile_path(user_id).unlink(missing_ok=True)


class LearnerProfileStore:
    """Owns learner profiles for the lifetime of the service.

    Profiles are created lazily on first lookup and cached, so repeated
    lookups for the same user return the same object. Updates to one
    user are serialized through :meth:`locked`.

    Args:
        storage: Persistence backend. Defaults to in-memory storage.
    """

    def __init__(self, storage: ProfileStorage | None = None):
        self.storage = storage if storage is not None else InMemoryProfileStorage()
        self._profiles: dict[str, LearnerProfile] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.RLock()
            return lock

    @contextmanager
    def locked(self, user_id: str) -> Iterator[LearnerProfile]:
        """Hold the user's lock and yield their profile."""
        with self._lock_for(user_id):
            yield self.get_or_create(user_id)

    def get_or_create(self, user_id: str) -> LearnerProfile:
        """Return the user's profile, constructing defaults on first access."""
        with self._lock_for(user_id):
            profile = self._profiles.get(user_id)
            if profile is not None:
                return profile

            try:
                profile = self.storage.load(user_id)
            except (OSError, ValueError) as e:
                logger.warning("profile_load_failed", user_id=user_id, error=str(e))
                profile = None

            if profile is None:
                profile = LearnerProfile(user_id=user_id)
                logger.info("profile_created", user_id=user_id)

            self._profiles[user_id] = profile
            return profile

    def save(self, profile: LearnerProfile) -> None:
        with self._lock_for(profile.user_id):
            profile.updated_at = datetime.now()
            self._profiles[profile.user_id] = profile
            self.storage.save(profile)

    def evict(self, user_id: str) -> None:
        """Drop the cached copy; the next lookup re-reads storage."""
        with self._lock_for(user_id):
            self._profiles.pop(user_id, None)

    def update_preferences(
        self,
        user_id: str,
        preferred_difficulty: DifficultyLevel | None = None,
        adaptive_mode: bool | None = None,
        learning_speed: LearningSpeed | None = None,
    ) -> LearnerProfile:
        with self.locked(user_id) as profile:
            if preferred_difficulty is not None:
                profile.preferred_difficulty = DifficultyLevel(preferred_difficulty)
            if adaptive_mode is not None:
                profile.adaptive_mode = adaptive_mode
            if learning_speed is not None:
                profile.learning_speed = LearningSpeed(learning_speed)
            self.save(profile)
            return profile
