"""Per-client variety memory.

Remembers the words, cuisines and techniques of recently generated titles so the
next prompt can steer away from them. State is an in-process map of fixed-size
ring buffers keyed by client id. Nothing is persisted; a restart clears it.

Stale memories (older than the validity window) are ignored, not deleted, so the
map grows with the number of distinct client ids seen by the process.
"""

import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from src.models.models import VarietyGuidance
from src.utils.culinary import (
    CUISINE_ROTATION,
    TECHNIQUE_ROTATION,
    detect_cuisines,
    detect_techniques,
    title_words,
)
from src.utils.logger import logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VarietyMemory:
    """Bounded history for one client."""

    words: deque
    cuisines: deque
    techniques: deque
    titles: deque
    last_seen_at: datetime
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class VarietyTracker:
    """Injected, instance-scoped variety cache. Tests create isolated instances."""

    def __init__(
        self,
        max_words: int = 15,
        max_cuisines: int = 10,
        validity: timedelta = timedelta(days=7),
        avoid_threshold: int = 2,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.max_words = max_words
        self.max_cuisines = max_cuisines
        self.validity = validity
        self.avoid_threshold = avoid_threshold
        self._clock = clock
        self._memories: dict[str, VarietyMemory] = {}
        self._map_lock = threading.Lock()

    def _memory(self, client_id: str) -> VarietyMemory:
        with self._map_lock:
            memory = self._memories.get(client_id)
            if memory is None:
                memory = VarietyMemory(
                    words=deque(maxlen=self.max_words),
                    cuisines=deque(maxlen=self.max_cuisines),
                    techniques=deque(maxlen=self.max_cuisines),
                    titles=deque(maxlen=self.max_cuisines),
                    last_seen_at=self._clock(),
                )
                self._memories[client_id] = memory
            return memory

    def _live(self, client_id: str) -> Optional[VarietyMemory]:
        memory = self._memories.get(client_id)
        if memory is None or self._clock() - memory.last_seen_at > self.validity:
            return None
        return memory

    def record_title(
        self,
        client_id: str,
        title: str,
        cuisine: Optional[str] = None,
        technique: Optional[str] = None,
    ) -> None:
        """Append a generated title's words, cuisine and technique to the client's history.

        Oldest entries fall off the front once a buffer is full. A stale memory is
        reset before appending, since its contents no longer count.
        """
        if not title or not title.strip():
            return

        words = title_words(title)
        cuisines = detect_cuisines(title)
        if cuisine and cuisine.strip().lower() not in cuisines:
            cuisines.insert(0, cuisine.strip().lower())
        techniques = detect_techniques(title)
        if technique and technique.strip().lower() not in techniques:
            techniques.insert(0, technique.strip().lower())

        memory = self._memory(client_id)
        with memory.lock:
            now = self._clock()
            if now - memory.last_seen_at > self.validity:
                memory.words.clear()
                memory.cuisines.clear()
                memory.techniques.clear()
                memory.titles.clear()
            memory.words.extend(words)
            memory.cuisines.extend(cuisines)
            memory.techniques.extend(techniques)
            memory.titles.append(title.strip())
            memory.last_seen_at = now

        logger.debug(f"Tracked title '{title}' for {client_id}: words={words} cuisines={cuisines}")

    def recent_words(self, client_id: str) -> set[str]:
        memory = self._live(client_id)
        if memory is None:
            return set()
        with memory.lock:
            return set(memory.words)

    def recent_titles(self, client_id: str) -> list[str]:
        memory = self._live(client_id)
        if memory is None:
            return []
        with memory.lock:
            return list(memory.titles)

    def variety_guidance(self, client_id: str, avoid: Iterable[str] = ()) -> VarietyGuidance:
        """Compute avoid lists and deterministic suggestions for the next generation.

        Words, cuisines and techniques seen at least avoid_threshold times are
        avoided; caller-supplied avoid items are merged in. Suggestions are the
        first rotation entries absent from the avoid lists.
        """
        extra = [item.strip().lower() for item in avoid if item and item.strip()]

        memory = self._live(client_id)
        if memory is None:
            words, cuisines, techniques = [], [], []
        else:
            with memory.lock:
                words, cuisines, techniques = list(memory.words), list(memory.cuisines), list(memory.techniques)

        def _overused(items: list[str]) -> list[str]:
            return [item for item, count in Counter(items).items() if count >= self.avoid_threshold]

        avoid_words = _overused(words)
        avoid_cuisines = _overused(cuisines)
        avoid_techniques = _overused(techniques)
        for item in extra:
            if item in CUISINE_ROTATION:
                target = avoid_cuisines
            elif item in TECHNIQUE_ROTATION:
                target = avoid_techniques
            else:
                target = avoid_words
            if item not in target:
                target.append(item)

        suggest_cuisine = next((c for c in CUISINE_ROTATION if c not in avoid_cuisines), None)
        suggest_technique = next((t for t in TECHNIQUE_ROTATION if t not in avoid_techniques), None)

        return VarietyGuidance(
            avoid_words=avoid_words,
            avoid_cuisines=avoid_cuisines,
            avoid_techniques=avoid_techniques,
            suggest_cuisine=suggest_cuisine,
            suggest_technique=suggest_technique,
        )

    def variety_notes(self, client_id: str) -> str:
        """Prompt snippet listing overused words, used by the condensed chat recipe."""
        guidance = self.variety_guidance(client_id)
        if not guidance.avoid_words:
            return ""
        return (
            "VARIETY NOTES: AVOID these overused dishes/words from recent suggestions: "
            f"{', '.join(guidance.avoid_words)}. Pick different names and a different style."
        )

    def clear(self, client_id: str) -> None:
        with self._map_lock:
            self._memories.pop(client_id, None)

    def stats(self) -> dict:
        now = self._clock()
        with self._map_lock:
            memories = list(self._memories.values())
        active = [m for m in memories if now - m.last_seen_at <= self.validity]
        return {
            "tracked_clients": len(memories),
            "active_clients": len(active),
            "stale_clients": len(memories) - len(active),
            "tracked_words": sum(len(m.words) for m in active),
        }
