"""Caching of rule explanations."""

import hashlib
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from methodassist.core.logging import get_logger
from methodassist.schemas.rule import RuleExplanation

logger = get_logger("methodassist.cache")


class ExplanationStore(Protocol):
    """Persistence for explanations, keyed by rule title."""

    def get(self, rule_title: str) -> Optional[RuleExplanation]: ...

    def put(self, entry: RuleExplanation) -> None: ...

    def delete(self, rule_title: str) -> bool: ...

    def clear(self) -> int: ...


class MemoryExplanationStore:
    """In-process store."""

    def __init__(self):
        self._entries: dict[str, RuleExplanation] = {}
        self._lock = threading.Lock()

    def get(self, rule_title: str) -> Optional[RuleExplanation]:
        with self._lock:
            return self._entries.get(rule_title)

    def put(self, entry: RuleExplanation) -> None:
        with self._lock:
            self._entries[entry.rule_title] = entry

    def delete(self, rule_title: str) -> bool:
        with self._lock:
            return self._entries.pop(rule_title, None) is not None

    def clear(self) -> int:
        with self._lock:
            deleted = len(self._entries)
            self._entries.clear()
            return deleted

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class FileExplanationStore:
    """One JSON file per rule title, named by the title's hash."""

    def __init__(self, cache_dir: Path):
        """Initialize store with directory."""
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _hash_key(self, key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def _get_cache_path(self, rule_title: str) -> Path:
        return self.cache_dir / f"{self._hash_key(rule_title)}.json"

    def get(self, rule_title: str) -> Optional[RuleExplanation]:
        """
        Get stored explanation.

        Unreadable entries are logged and treated as misses.
        """
        cache_path = self._get_cache_path(rule_title)
        if not cache_path.exists():
            return None

        try:
            data = json.loads(cache_path.read_text(encoding="utf-8"))
            entry = RuleExplanation.model_validate(data)
        except (OSError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(
                f"Ignoring unreadable cache entry {cache_path.name}: {e}",
                context={"rule_title": rule_title},
            )
            return None
        if entry.rule_title != rule_title:
            return None
        return entry

    def put(self, entry: RuleExplanation) -> None:
        """Write entry atomically so readers never see a partial file."""
        cache_path = self._get_cache_path(entry.rule_title)
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(entry.model_dump_json(indent=2))
            os.replace(tmp_name, cache_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, rule_title: str) -> bool:
        """
        Delete cache entry.

        Returns:
            True if deleted, False if not found
        """
        cache_path = self._get_cache_path(rule_title)
        if cache_path.exists():
            cache_path.unlink()
            return True
        return False

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries deleted
        """
        deleted = 0
        for cache_file in self.cache_dir.glob("*.json"):
            cache_file.unlink(missing_ok=True)
            deleted += 1
        return deleted


class _KeyLock:
    """A lock plus the number of callers holding or waiting for it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class ExplanationCache:
    """
    Memoizes explanation generation per rule title.

    Concurrent misses for the same title are serialized by a per-key lock,
    so at most one generation is in flight per key. Different keys never
    block each other. A key's lock is dropped once no caller holds or
    waits for it.
    """

    def __init__(self, store: Optional[ExplanationStore] = None):
        self.store: ExplanationStore = store if store is not None else MemoryExplanationStore()
        self._key_locks: dict[str, _KeyLock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def _locked(self, rule_title: str) -> Iterator[None]:
        with self._guard:
            key_lock = self._key_locks.get(rule_title)
            if key_lock is None:
                key_lock = self._key_locks[rule_title] = _KeyLock()
            key_lock.users += 1
        try:
            with key_lock.lock:
                yield
        finally:
            with self._guard:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self._key_locks[rule_title]

    def get(self, rule_title: str) -> Optional[str]:
        entry = self.store.get(rule_title)
        return entry.explanation if entry else None

    def get_or_create(
        self,
        rule_title: str,
        rule_text: str,
        generate: Callable[[], str],
    ) -> str:
        """
        Return the cached explanation, generating and storing it on a miss.

        Empty generations are returned but not stored, so a later call can
        try again. Exceptions from ``generate`` propagate and nothing is
        stored.
        """
        entry = self.store.get(rule_title)
        if entry is not None:
            logger.debug("Explanation cache hit", context={"rule_title": rule_title})
            return entry.explanation

        with self._locked(rule_title):
            # another caller may have filled the key while we waited
            entry = self.store.get(rule_title)
            if entry is not None:
                logger.debug("Explanation cache hit", context={"rule_title": rule_title})
                return entry.explanation

            logger.info("Explanation cache miss", context={"rule_title": rule_title})
            explanation = generate()
            if explanation:
                self.store.put(
                    RuleExplanation(
                        rule_title=rule_title,
                        rule_description=rule_text,
                        explanation=explanation,
                    )
                )
            return explanation

    def invalidate(self, rule_title: str) -> bool:
        with self._locked(rule_title):
            return self.store.delete(rule_title)

    def clear(self) -> int:
        return self.store.clear()
