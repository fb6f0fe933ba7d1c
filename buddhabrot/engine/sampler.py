"""Candidate generation for the sampling loop.

Two policies share one interface, ``step() -> Sample | None``:

* :class:`UniformSampler` draws every candidate independently from the
  sampling domain and records each escaping orbit with weight 1.
* :class:`GuidedSampler` keeps a running candidate and proposes mutations of
  it, accepting a proposal with probability ``new_hits / current_hits``. Orbits
  that cross the viewing window often are visited more often, so each of
  their points is recorded with weight ``iteration_budget // hits``.

The guided acceptance ratio deliberately ignores the proposal density.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from buddhabrot.config import RunConfig
from buddhabrot.engine.orbit import count_inside, in_main_bulbs, new_trajectory, trace_orbit
from buddhabrot.geometry import Point, point

Source = Callable[[], Point]

@dataclass
class SamplerState:
    candidate: Optional[Point] = None
    iteration: int = 0
    hits: int = 0
    trajectory: Optional[np.ndarray] = None

@dataclass(frozen=True)
class Sample:
    """An escaping candidate ready to be recorded.

    ``trajectory[i]`` is the point visited at step ``i``, for every step
    before the escape at ``iteration``.
    """

    candidate: Point
    iteration: int
    trajectory: np.ndarray
    weight: int

class UniformSampler:
    def __init__(self, config: RunConfig, rng: np.random.Generator, source: Optional[Source] = None):
        self.config = config
        self.rng = rng
        self.budget = config.iteration_budget
        self.source = source or self.uniform
        self.proposals = 0
        self.skipped = 0
        self._scratch = new_trajectory(self.budget)

    def uniform(self) -> Point:
        d = self.config.domain
        return point(self.rng.uniform(d.min.re, d.max.re), self.rng.uniform(d.min.im, d.max.im))

    def _trace(self, c: Point, out: np.ndarray) -> int:
        return int(trace_orbit(c.re, c.im, self.config.bailout, self.budget, out))

    def step(self) -> Optional[Sample]:
        c = self.source()
        self.proposals += 1
        if in_main_bulbs(c):
            self.skipped += 1
            return None
        k = self._trace(c, self._scratch)
        if k < 0:
            return None
        return Sample(c, k, self._scratch[:k], 1)

class GuidedSampler(UniformSampler):
    def __init__(self, config: RunConfig, rng: np.random.Generator, source: Optional[Source] = None):
        super().__init__(config, rng, source)
        self._current = new_trajectory(self.budget)
        self.state = SamplerState(candidate=self.source())

    def mutate(self, c: Point) -> Point:
        if self.rng.random() < self.config.jump_probability:
            return self.source()
        dev = self.config.mutation_deviation
        return point(self.rng.normal(c.re, dev), self.rng.normal(c.im, dev))

    def accept(self, hits: int) -> bool:
        if self.state.hits == 0:
            return True
        return self.rng.random() < hits / self.state.hits

    def weigh(self, c: Point) -> Tuple[int, int]:
        """Trace ``c`` into scratch space; return ``(escape_iteration, window_hits)``.

        Bounded orbits and orbits that never enter the viewing window weigh 0.
        """
        k = self._trace(c, self._scratch)
        if k < 0:
            return k, 0
        w = self.config.window
        return k, int(count_inside(self._scratch, k, w.min.re, w.min.im, w.max.re, w.max.im))

    def step(self) -> Optional[Sample]:
        proposal = self.mutate(self.state.candidate)
        self.proposals += 1
        if in_main_bulbs(proposal):
            self.skipped += 1
            return None
        k, hits = self.weigh(proposal)
        if hits == 0:
            return None
        if self.accept(hits):
            self._scratch, self._current = self._current, self._scratch
            self.state = SamplerState(proposal, k, hits, self._current[:k])
        s = self.state
        return Sample(s.candidate, s.iteration, s.trajectory, int(self.budget / s.hits))

def make_sampler(config: RunConfig, rng: np.random.Generator, source: Optional[Source] = None) -> UniformSampler:
    if config.sampler == "uniform":
        return UniformSampler(config, rng, source)
    return GuidedSampler(config, rng, source)
