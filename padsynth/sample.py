"""PADsynth wave tables, a table oscillator and sample reference lists."""

from __future__ import annotations

import math
import struct
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

_UINT32_MASK = 0xFFFFFFFF


class Apodizer(IntEnum):
    RECT = 0
    TRIANG = 1
    WELCH = 2
    HANN = 3
    GAUSS = 4


def _float_bits(x: float) -> int:
    return struct.unpack("<I", struct.pack("<f", x))[0]


def _bits_float(i: int) -> float:
    return struct.unpack("<f", struct.pack("<I", i & _UINT32_MASK))[0]


def fast_log2f(x: float) -> float:
    """Approximate log2 of a positive float using its IEEE-754 bit pattern."""
    ui = _float_bits(x)
    vf = _bits_float((ui & 0x007FFFFF) | 0x3F000000)
    y = float(ui) * 1.1920928955078125e-7 - 124.22551499
    return y - 1.498030302 * vf - 1.72587999 / (0.3520887068 + vf)


def fast_pow2f(p: float) -> float:
    """Approximate 2 ** p by building the IEEE-754 bit pattern directly."""
    z = p - int(p) + (1.0 if p < 0.0 else 0.0)
    bits = int((1 << 23) * (p + 121.2740575 + 27.7280233 / (4.84252568 - z) - 1.49012907 * z))
    return _bits_float(bits)


def fast_powf(x: float, p: float) -> float:
    """Approximate x ** p for positive x."""
    return fast_pow2f(p * fast_log2f(x))


def _freq_powf(ni: float, bws: float) -> float:
    return fast_powf(ni, 1.0 + bws)


# windowing/apodizing profiles, evaluated over arrays of frequency offsets

def _apod_rect(fi: np.ndarray, bwi: float) -> np.ndarray:
    return np.where((fi > -bwi) & (fi < bwi), 1.0, 0.0)


def _apod_triang(fi: np.ndarray, bwi: float) -> np.ndarray:
    bw2 = 2.0 * bwi
    inside = (fi > -bw2) & (fi < bw2)
    return np.where(inside, 1.0 - np.abs(fi / bw2), 0.0)


def _apod_welch(fi: np.ndarray, bwi: float) -> np.ndarray:
    inside = (fi > -bwi) & (fi < bwi)
    x1 = fi / bwi
    return np.where(inside, 1.0 - x1 * x1, 0.0)


def _apod_hann(fi: np.ndarray, bwi: float) -> np.ndarray:
    bw2 = 2.0 * bwi
    inside = (fi > -bw2) & (fi < bw2)
    return np.where(inside, 0.5 + 0.5 * np.cos(math.pi * fi / bw2), 0.0)


def _apod_gauss(fi: np.ndarray, bwi: float) -> np.ndarray:
    x2 = (fi / bwi) ** 2
    return np.where(x2 < 14.71280603, np.exp(-np.minimum(x2, 14.71280603)), 0.0)


_APODIZERS = {
    Apodizer.RECT: _apod_rect,
    Apodizer.TRIANG: _apod_triang,
    Apodizer.WELCH: _apod_welch,
    Apodizer.HANN: _apod_hann,
    Apodizer.GAUSS: _apod_gauss,
}


class _PhaseRand:
    """Hal Chamberlain's linear congruential generator, scaled to [-1, 1)."""

    def __init__(self, seed: int) -> None:
        self.state = seed & _UINT32_MASK

    def __call__(self) -> float:
        self.state = (self.state * 196314165 + 907633515) & _UINT32_MASK
        return self.state / float(0x80000000) - 1.0


Scheduler = Callable[["Sample", float, float, float, int, Apodizer], None]


class Sample:
    """PADsynth wave table built from a harmonic profile by inverse FFT."""

    DEFAULT_NH = 32
    DEFAULT_NSIZE = 1024 << 6

    def __init__(
        self,
        sid: int = 0,
        nsize: int = DEFAULT_NSIZE,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._sid = sid
        self._nsize = nsize
        self._scheduler = scheduler
        self._freq0 = 0.0
        self._width = 0.0
        self._scale = 0.0
        self._nh = 0
        self._apod = Apodizer.GAUSS
        self._ah: list[float] = []
        self._reset = 0
        self._phase0 = 0.0
        self._table = np.zeros(nsize + 4)
        self.sample_rate = 44100.0
        self._reset_nh_max(self.DEFAULT_NH)

    # properties

    @property
    def sid(self) -> int:
        return self._sid

    @property
    def freq0(self) -> float:
        return self._freq0

    @property
    def width(self) -> float:
        return self._width

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def nh(self) -> int:
        return self._nh

    @property
    def nh_max(self) -> int:
        return len(self._ah)

    @property
    def apod(self) -> Apodizer:
        return self._apod

    @property
    def size(self) -> int:
        """Table size in frames."""
        return self._nsize

    @property
    def phase0(self) -> float:
        """Table index of the first rising zero crossing."""
        return self._phase0

    def copy(self) -> Sample:
        """Return a new sample sharing sid, size, rate and harmonic profile."""
        other = Sample(self._sid, self._nsize, self._scheduler)
        other.sample_rate = self.sample_rate
        other._ah = list(self._ah)
        return other

    # harmonics

    def reset_nh(self, nh: int = 0) -> None:
        """Reset the harmonic profile to its defaults for nh harmonics."""
        if nh < 1:
            nh = self.DEFAULT_NH
        self._ah = []
        self._nh = 0
        self._reset_nh_max(nh)

    def _reset_nh_max(self, nh: int) -> None:
        odd = bool(self._sid & 1)
        for n in range(len(self._ah), nh):
            if odd:
                weight = 1.667 if n & 1 else 1.0
            else:
                weight = 1.0 if (n & 1) or n < 1 else 1.667
            self._ah.append(weight / float(n + 1))

    def set_harmonic(self, n: int, h: float) -> None:
        """Set the n-th harmonic amplitude; out-of-range indices are ignored."""
        if 0 <= n < len(self._ah):
            self._ah[n] = float(h)

    def harmonic(self, n: int) -> float:
        """Return the n-th harmonic amplitude, or 0.0 when out of range."""
        return self._ah[n] if 0 <= n < len(self._ah) else 0.0

    # init

    def reset_test(
        self, freq0: float, width: float, scale: float, nh: int, apod: Apodizer
    ) -> None:
        """Schedule a rebuild if any parameter changed or a reset is pending."""
        current = (self._freq0, self._width, self._scale, self._nh, self._apod)
        wanted = (freq0, width, scale, nh, apod)
        self._reset += sum(a != b for a, b in zip(current, wanted))
        if self._reset > 0:
            self._reset = 0
            if self._scheduler is None:
                self.reset_sync(freq0, width, scale, nh, apod)
            else:
                self._scheduler(self, freq0, width, scale, nh, Apodizer(apod))

    def reset_sync(
        self, freq0: float, width: float, scale: float, nh: int, apod: Apodizer
    ) -> None:
        """Set parameters and rebuild the table immediately."""
        self._freq0 = float(freq0)
        self._width = float(width)
        self._scale = float(scale)
        self._nh = int(nh)
        self._apod = Apodizer(apod)
        self._reset_nh_max(self._nh)
        self._install(self._build_table())

    def reset(self) -> None:
        """Force the next reset_test to rebuild."""
        self._reset += 1

    def _build_table(self) -> np.ndarray:
        n = self._nsize
        half = n >> 1
        rand = _PhaseRand(int(float(n) * self._width) ^ 0x9631)

        rate1 = self.sample_rate / float(n)
        bws = self._scale ** 3
        bw_base = fast_powf(2.0, self._width / 1200.0) - 1.0
        freqs = rate1 * np.arange(half, dtype=float)
        amp = np.zeros(half)
        apodize = _APODIZERS[self._apod]
        with np.errstate(divide="ignore", invalid="ignore"):
            for idx in range(self._nh):
                ni = float(idx + 1)
                fp = _freq_powf(ni, bws)
                bwi = bw_base * 0.5 * self._freq0 * fp
                fi = self._freq0 * fp
                amp += apodize(freqs - fi, bwi) * (1.0 / ni) * self._ah[idx]
        amp = np.nan_to_num(amp)

        phases = np.array([rand() for _ in range(half)]) * 2.0 * math.pi
        spectrum = np.zeros(half + 1, dtype=complex)
        spectrum[:half] = amp * np.cos(phases) + 1j * amp * np.sin(phases)
        table = np.fft.irfft(spectrum, n) * n
        return self._normalize(table)

    @staticmethod
    def _normalize(table: np.ndarray) -> np.ndarray:
        pmax = max(0.0, float(table.max()))
        pmin = min(0.0, float(table.min()))
        table = table - 0.5 * (pmax + pmin)
        peak = float(np.abs(table).max())
        if peak > 0.0:
            table = table * (1.0 / peak)
        return table

    def _install(self, table: np.ndarray) -> None:
        rising = np.nonzero((table[:-1] < 0.0) & (table[1:] >= 0.0))[0]
        self._phase0 = float(rising[0] + 1) if rising.size else 0.0
        self._table = np.concatenate((table, table[:4]))

    # playback

    def start(self, pshift: float = 0.0, freq: float = 0.0) -> tuple[float, float]:
        """Return the first value and the next phase, from phase zero plus shift."""
        p0 = float(self._nsize)
        phase = self._phase0 + pshift * p0
        if phase >= p0:
            phase -= p0
        return self.sample(phase, freq)

    def sample(self, phase: float, freq: float) -> tuple[float, float]:
        """Return the cubic-interpolated value at phase and the advanced phase."""
        if self._freq0 == 0.0:
            raise RuntimeError("sample table has not been built")
        i = int(phase)
        alpha = phase - float(i)
        p0 = float(self._nsize)
        phase += freq / self._freq0
        if phase >= p0:
            phase -= p0
        x0, x1, x2, x3 = (float(v) for v in self._table[i:i + 4])
        c1 = (x2 - x0) * 0.5
        b1 = x1 - x2
        b2 = c1 + b1
        c3 = (x3 - x1) * 0.5 + b2 + b1
        c2 = c3 + b2
        return (((c3 * alpha) - c2) * alpha + c1) * alpha + x1, phase

    def value(self, phase: float) -> float:
        """Return the raw table value at a normalised phase from phase zero."""
        p0 = float(self._nsize)
        phase = phase * p0 + self._phase0
        if phase >= p0:
            phase -= p0
        return float(self._table[int(phase)])


class Generator:
    """Oscillator over a Sample that keeps its own running phase."""

    def __init__(self, sample: Sample) -> None:
        self.reset(sample)

    def reset(self, sample: Sample) -> None:
        """Attach a sample and rewind the phase."""
        self._sample = sample
        self._phase = 0.0

    def start(self, pshift: float = 0.0, freq: float = 0.0) -> float:
        value, self._phase = self._sample.start(pshift, freq)
        return value

    def sample(self, freq: float) -> float:
        value, self._phase = self._sample.sample(self._phase, freq)
        return value


@dataclass
class _Ref:
    sample: Sample
    refc: int = 0


class SampleRefs:
    """Reference-counted play list of samples; the newest is never freed."""

    def __init__(self) -> None:
        self._play: deque[_Ref] = deque()

    def __len__(self) -> int:
        return len(self._play)

    def _first(self) -> _Ref:
        if not self._play:
            raise IndexError("no samples in play list")
        return self._play[0]

    def append(self, sample: Sample) -> None:
        self._play.append(_Ref(sample))

    def next(self) -> Sample:
        """The oldest sample still in play."""
        return self._first().sample

    def prev(self) -> Sample:
        """The newest sample."""
        if not self._play:
            raise IndexError("no samples in play list")
        return self._play[-1].sample

    def acquire(self) -> None:
        self._first().refc += 1

    def release(self) -> None:
        self._first().refc -= 1
        self.free_refs()

    def free_refs(self) -> None:
        """Drop unreferenced samples from the front, keeping the newest."""
        while len(self._play) > 1 and self._play[0].refc == 0:
            self._play.popleft()

    def clear_refs(self, force: bool = False) -> None:
        """Discard freed samples; with force, discard every sample."""
        if force:
            self._play.clear()