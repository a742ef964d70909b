"""
Beat Catcher - Entity Pools
Fixed-capacity slot pools for falling notes and spotlight flashes.

Slots are a dense list of Optional entries. Allocation takes the first free
slot in index order and never grows the pool; a full pool drops the request.
"""

import random
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, List, Optional, Protocol, Tuple, TypeVar

from config import NoteConfig, PlayfieldConfig, SpotlightConfig
from logging_utils import log_event


class PoolEntity(Protocol):
    def update(self, dt: float) -> None:
        ...


T = TypeVar("T", bound=PoolEntity)


@dataclass
class Note:
    """Falling catch target"""
    x: float
    y: float
    vy: float             # Fall speed (px/s), > 0
    r: float              # Radius (px)

    def update(self, dt: float) -> None:
        self.y += self.vy * dt

    def off_screen(self, playfield_height: float) -> bool:
        return self.y - self.r > playfield_height


@dataclass
class Spotlight:
    """Decaying light cone anchored at the bottom edge"""
    x: float
    angle: float          # Tilt (radians)
    width: float
    length: float
    a: float              # Alpha/intensity
    decay: float          # Alpha lost per tick
    color: Tuple[float, float, float] = (255.0, 255.0, 255.0)

    def update(self, dt: float) -> None:
        # Tick-coupled: dt is deliberately ignored
        self.a -= self.decay

    @property
    def dead(self) -> bool:
        return self.a <= 0


class EntityPool(Generic[T]):
    def __init__(self, capacity: int, name: str = "pool"):
        if capacity < 1:
            raise ValueError(f"{name} capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self.name = name
        self._slots: List[Optional[T]] = [None] * self.capacity

    def allocate(self, entity: T) -> bool:
        """Install `entity` in the first free slot. Returns False (and drops it) when full."""
        for index, slot in enumerate(self._slots):
            if slot is None:
                self._slots[index] = entity
                return True
        log_event("DEBUG", "Pool", "Pool full, entity dropped", pool=self.name, capacity=self.capacity)
        return False

    def tick(self, dt: float) -> None:
        for entity in self._slots:
            if entity is not None:
                entity.update(dt)

    def reap(self, predicate: Callable[[T], bool]) -> List[T]:
        """Free every slot whose entity matches; returns the removed entities in slot order."""
        removed: List[T] = []
        for index, entity in enumerate(self._slots):
            if entity is not None and predicate(entity):
                self._slots[index] = None
                removed.append(entity)
        return removed

    def free(self, index: int) -> Optional[T]:
        entity = self._slots[index]
        self._slots[index] = None
        return entity

    def clear(self) -> None:
        for index in range(self.capacity):
            self._slots[index] = None

    def count(self) -> int:
        return sum(1 for entity in self._slots if entity is not None)

    def occupied(self) -> Iterator[Tuple[int, T]]:
        for index, entity in enumerate(self._slots):
            if entity is not None:
                yield index, entity

    def __iter__(self) -> Iterator[T]:
        for _, entity in self.occupied():
            yield entity

    def __len__(self) -> int:
        return self.count()


def make_note(rng: random.Random, playfield: PlayfieldConfig, config: NoteConfig) -> Note:
    margin = config.spawn_margin
    return Note(
        x=rng.uniform(margin, playfield.width - margin),
        y=config.start_y,
        vy=config.speed,
        r=rng.uniform(config.radius_min, config.radius_max),
    )


def make_spotlight(rng: random.Random, playfield: PlayfieldConfig, config: SpotlightConfig) -> Spotlight:
    margin = config.spawn_margin
    return Spotlight(
        x=rng.uniform(margin, playfield.width - margin),
        angle=rng.uniform(config.angle_min, config.angle_max),
        width=rng.uniform(config.width_min, config.width_max),
        length=rng.uniform(config.length_min, config.length_max),
        a=config.initial_alpha,
        decay=rng.uniform(config.decay_min, config.decay_max),
        color=(
            rng.uniform(*config.red_range),
            rng.uniform(*config.green_range),
            rng.uniform(*config.blue_range),
        ),
    )
