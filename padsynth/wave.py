"""Smoothed wave tables and a simple wave-table oscillator."""

from __future__ import annotations

import math
from enum import IntEnum

from .fx import _Lcg


class Shape(IntEnum):
    PULSE = 0
    SAW = 1
    SINE = 2
    RAND = 3
    NOISE = 4


class Wave:
    """Wave table smoothed by repeated one-pole integration passes."""

    def __init__(self, nsize: int = 4096, nover: int = 24) -> None:
        self._nsize = nsize
        self._nover = nover
        self._shape = Shape.PULSE
        self._width = 1.0
        self.sample_rate = 44100.0
        self._phase0 = 0.0
        self._table: list[float] = [0.0] * (nsize + 4)
        self.reset(self._shape, self._width)

    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def width(self) -> float:
        return self._width

    @property
    def size(self) -> int:
        """Table size in frames."""
        return self._nsize

    @property
    def phase0(self) -> float:
        """Normalised phase of the last rising zero crossing."""
        return self._phase0

    def reset(self, shape: Shape, width: float) -> None:
        """Rebuild the table for the given shape and width."""
        self._shape = Shape(shape)
        self._width = float(width)
        builders = {
            Shape.PULSE: self._build_pulse,
            Shape.SAW: self._build_saw,
            Shape.SINE: self._build_sine,
            Shape.RAND: self._build_rand,
            Shape.NOISE: self._build_noise,
        }
        self._install(builders[self._shape]())

    def reset_test(self, shape: Shape, width: float) -> None:
        """Rebuild only when shape or width differ from the current ones."""
        if shape != self._shape or width != self._width:
            self.reset(shape, width)

    def start(self, pshift: float = 0.0, freq: float = 0.0) -> tuple[float, float]:
        """Return the first value and the advanced phase from phase zero plus shift."""
        phase = self._phase0 + pshift
        if phase >= 1.0:
            phase -= 1.0
        return self.sample(phase, freq)

    def sample(self, phase: float, freq: float) -> tuple[float, float]:
        """Return the linearly interpolated value at phase and the next phase."""
        index = phase * float(self._nsize)
        i = int(index)
        alpha = index - float(i)
        phase += freq / self.sample_rate
        if phase >= 1.0:
            phase -= 1.0
        x0 = self._table[i]
        x1 = self._table[i + 1]
        return x0 + alpha * (x1 - x0), phase

    def value(self, phase: float) -> float:
        """Return the raw table value at a phase relative to phase zero."""
        phase += self._phase0
        if phase >= 1.0:
            phase -= 1.0
        return self._table[int(phase * float(self._nsize))]

    # table builders

    def _build_pulse(self) -> list[float]:
        w2 = float(self._nsize) * self._width * 0.5
        table = [1.0 if float(i) < w2 else -1.0 for i in range(self._nsize)]
        return self._normalize(self._filter(table))

    def _build_saw(self) -> list[float]:
        p0 = float(self._nsize)
        w0 = p0 * self._width
        table = [
            2.0 * p / w0 - 1.0 if p < w0 else 1.0 - 2.0 * (1.0 + (p - w0)) / (p0 - w0)
            for p in map(float, range(self._nsize))
        ]
        return self._normalize(self._filter(table))

    def _build_sine(self) -> list[float]:
        p0 = float(self._nsize)
        w0 = p0 * self._width
        w2 = w0 * 0.5
        table = [
            math.sin(2.0 * math.pi * p / w0)
            if p < w2
            else math.sin(math.pi * (p + (p0 - w0)) / (p0 - w2))
            for p in map(float, range(self._nsize))
        ]
        if self._width < 1.0:
            table = self._normalize(self._filter(table))
        return table

    def _build_rand(self) -> list[float]:
        p0 = float(self._nsize)
        w0 = p0 * self._width
        ihold = (max(int(p0 - w0), 0) >> 3) + 1
        rand = _Lcg(int(w0) & 0xFFFFFFFF)
        table = []
        p = 0.0
        for i in range(self._nsize):
            if i % ihold == 0:
                p = rand()
            table.append(p)
        return self._normalize(self._filter(table))

    def _build_noise(self) -> list[float]:
        w0 = float(self._nsize) * self._width
        rand = _Lcg((int(w0) ^ 0x9631) & 0xFFFFFFFF)
        return [rand() for _ in range(self._nsize)]

    # post-processors

    def _filter(self, table: list[float]) -> list[float]:
        n = self._nsize
        if self._nover < 1:
            return table
        k = next((i for i in range(1, n) if table[i - 1] < 0.0 <= table[i]), 0)
        # Passes start right after the first rising crossing and wrap around.
        rotated = table[k + 1:] + table[:k + 1]
        for _ in range(self._nover):
            p = rotated[-1]
            for i, x in enumerate(rotated):
                p = 0.5 * (x + p)
                rotated[i] = p
        split = n - k - 1
        return rotated[split:] + rotated[:split]

    @staticmethod
    def _normalize(table: list[float]) -> list[float]:
        pmax = max(0.0, max(table))
        pmin = min(0.0, min(table))
        pmid = 0.5 * (pmax + pmin)
        table = [x - pmid for x in table]
        peak = max(abs(x) for x in table)
        if peak > 0.0:
            gain = 1.0 / peak
            table = [x * gain for x in table]
        return table

    def _install(self, table: list[float]) -> None:
        n = self._nsize
        self._table = table + table[:4]
        k = 0
        for i in range(1, n):
            if table[i - 1] < 0.0 <= table[i]:
                k = i
        self._phase0 = float(k) / float(n)


class LfoWave(Wave):
    """Hard, unsmoothed wave table for low-frequency oscillators."""

    def __init__(self, nsize: int = 1024) -> None:
        super().__init__(nsize, 0)


class Oscillator:
    """Wave-table oscillator that keeps its own running phase."""

    def __init__(self, wave: Wave | None = None) -> None:
        self.reset(wave)

    def reset(self, wave: Wave | None) -> None:
        """Attach a wave and rewind the phase."""
        self._wave = wave
        self._phase = 0.0

    @property
    def wave(self) -> Wave | None:
        return self._wave

    def _require_wave(self) -> Wave:
        if self._wave is None:
            raise RuntimeError("oscillator has no wave attached")
        return self._wave

    def start(self, pshift: float = 0.0, freq: float = 0.0) -> float:
        """Restart at phase zero plus shift and return the first value."""
        value, self._phase = self._require_wave().start(pshift, freq)
        return value

    def sample(self, freq: float) -> float:
        """Return the next value at the given frequency."""
        value, self._phase = self._require_wave().sample(self._phase, freq)
        return value

    def pshift(self) -> float:
        """Current phase shift relative to the wave's phase zero."""
        pshift = self._require_wave().phase0 + self._phase
        return pshift - 1.0 if pshift >= 1.0 else pshift