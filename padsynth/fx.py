"""Audio effects: biquad filter, compressor, flanger, chorus, delay and phaser."""

from __future__ import annotations

import math
from collections.abc import MutableSequence
from enum import IntEnum

_INT32_MAX = 2147483647
_UINT32_MASK = 0xFFFFFFFF


class _Lcg:
    """Hal Chamberlain's pseudo-random linear congruential generator."""

    def __init__(self, seed: int = 0x9631) -> None:
        self.state = seed

    def __call__(self) -> float:
        self.state = (self.state * 196314165 + 907633515) & _UINT32_MASK
        return self.state / float(_INT32_MAX) - 1.0


_fx_rand = _Lcg()


def fx_randf() -> float:
    """Return the next shared pseudo-random value, roughly in [-1, 1]."""
    return _fx_rand()


class FilterType(IntEnum):
    LOW = 0
    HIGH = 1
    BAND1 = 2
    BAND2 = 3
    NOTCH = 4
    ALL_PASS = 5
    PEAK = 6
    LO_SHELF = 7
    HI_SHELF = 8


class Filter:
    """RBJ cookbook biquad filter."""

    def __init__(self, sample_rate: float = 44100.0) -> None:
        self.sample_rate = sample_rate
        self.clear()

    def clear(self) -> None:
        """Zero the coefficients and the in/out history."""
        self._b0a0 = self._b1a0 = self._b2a0 = 0.0
        self._a1a0 = self._a2a0 = 0.0
        self._in1 = self._in2 = 0.0
        self._out1 = self._out2 = 0.0

    def reset(
        self,
        type: FilterType,
        freq: float,
        q: float,
        gain: float = 0.0,
        bwq: bool = False,
    ) -> None:
        """Clear history and compute coefficients for the given response."""
        self.clear()
        type = FilterType(type)
        omega = 2.0 * math.pi * freq / self.sample_rate
        tsin = math.sin(omega)
        tcos = math.cos(omega)
        if bwq:
            alpha = tsin * math.sinh(math.log(2.0) / 2.0 * q * omega / tsin)
        else:
            alpha = tsin / (2.0 * q)

        if type >= FilterType.PEAK:
            amp = 10.0 ** (gain / 40.0)
            beta = math.sqrt(amp) / q
            if type == FilterType.PEAK:
                b0 = 1.0 + alpha * amp
                b1 = -2.0 * tcos
                b2 = 1.0 - alpha * amp
                a0 = 1.0 + alpha / amp
                a1 = -2.0 * tcos
                a2 = 1.0 - alpha / amp
            elif type == FilterType.LO_SHELF:
                b0 = amp * ((amp + 1.0) - (amp - 1.0) * tcos + beta * tsin)
                b1 = 2.0 * amp * ((amp - 1.0) - (amp + 1.0) * tcos)
                b2 = amp * ((amp + 1.0) - (amp - 1.0) * tcos - beta * tsin)
                a0 = (amp + 1.0) + (amp - 1.0) * tcos + beta * tsin
                a1 = -2.0 * ((amp - 1.0) + (amp + 1.0) * tcos)
                a2 = (amp + 1.0) + (amp - 1.0) * tcos - beta * tsin
            else:
                b0 = amp * ((amp + 1.0) + (amp - 1.0) * tcos + beta * tsin)
                b1 = -2.0 * amp * ((amp - 1.0) + (amp + 1.0) * tcos)
                b2 = amp * ((amp + 1.0) + (amp - 1.0) * tcos - beta * tsin)
                a0 = (amp + 1.0) - (amp - 1.0) * tcos + beta * tsin
                a1 = 2.0 * ((amp - 1.0) - (amp + 1.0) * tcos)
                a2 = (amp + 1.0) - (amp - 1.0) * tcos - beta * tsin
        else:
            a0 = 1.0 + alpha
            a1 = -2.0 * tcos
            a2 = 1.0 - alpha
            if type == FilterType.LOW:
                b0 = (1.0 - tcos) / 2.0
                b1 = 1.0 - tcos
                b2 = (1.0 - tcos) / 2.0
            elif type == FilterType.HIGH:
                b0 = (1.0 + tcos) / 2.0
                b1 = -1.0 - tcos
                b2 = (1.0 + tcos) / 2.0
            elif type == FilterType.BAND1:
                b0 = tsin / 2.0
                b1 = 0.0
                b2 = -tsin / 2.0
            elif type == FilterType.BAND2:
                b0 = alpha
                b1 = 0.0
                b2 = -alpha
            elif type == FilterType.NOTCH:
                b0 = 1.0
                b1 = -2.0 * tcos
                b2 = 1.0
            else:
                b0 = 1.0 - alpha
                b1 = -2.0 * tcos
                b2 = 1.0 + alpha

        self._b0a0 = b0 / a0
        self._b1a0 = b1 / a0
        self._b2a0 = b2 / a0
        self._a1a0 = a1 / a0
        self._a2a0 = a2 / a0

    def output(self, x: float) -> float:
        """Filter one sample."""
        out = (
            self._b0a0 * x
            + self._b1a0 * self._in1
            + self._b2a0 * self._in2
            - self._a1a0 * self._out1
            - self._a2a0 * self._out2
        )
        self._in2, self._in1 = self._in1, x
        self._out2, self._out1 = self._out1, out
        return out


class Compressor:
    """Three-band EQ followed by a peak compressor."""

    THRESHOLD = 0.251
    POST_GAIN = 1.995

    def __init__(self, sample_rate: float = 44100.0) -> None:
        self._lo = Filter(sample_rate)
        self._mi = Filter(sample_rate)
        self._hi = Filter(sample_rate)
        self._sample_rate = sample_rate
        self._peak = 0.0
        self._attack = 0.0
        self._release = 0.0

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    @sample_rate.setter
    def sample_rate(self, value: float) -> None:
        self._sample_rate = value
        for band in (self._lo, self._mi, self._hi):
            band.sample_rate = value

    def reset(self) -> None:
        """Reset the envelope and configure the EQ bands."""
        self._peak = 0.0
        self._attack = math.exp(-1000.0 / (self._sample_rate * 3.6))
        self._release = math.exp(-1000.0 / (self._sample_rate * 150.0))
        self._lo.reset(FilterType.PEAK, 100.0, 1.0, 6.0)
        self._mi.reset(FilterType.LO_SHELF, 1000.0, 1.0, 3.0)
        self._hi.reset(FilterType.HI_SHELF, 10000.0, 1.0, 4.0)

    def process(self, samples: MutableSequence[float]) -> MutableSequence[float]:
        """Process samples in place and return them."""
        for i, x in enumerate(samples):
            ad = 1e-14 * fx_randf()
            lo = self._lo.output(self._mi.output(self._hi.output(x + ad)))
            peak = abs(lo)
            gain = self.THRESHOLD / peak if peak > self.THRESHOLD else 1.0
            coeff = self._attack if self._peak > gain else self._release
            self._peak = self._peak * coeff + (1.0 - coeff) * gain
            samples[i] = lo * self._peak * self.POST_GAIN
        return samples


class Flanger:
    """Fractional delay line with Hermite interpolation."""

    MAX_SIZE = 1 << 12
    MAX_MASK = MAX_SIZE - 1

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._buffer = [0.0] * self.MAX_SIZE
        self._frames = 0

    def output(self, x: float, delay: float, feedb: float) -> float:
        """Read the delayed sample and write the new input with feedback."""
        delta = float(self._frames) - delay
        if delta < 0.0:
            delta += float(self.MAX_SIZE)
        index = int(delta)
        buf = self._buffer
        mask = self.MAX_MASK
        y0 = buf[index & mask]
        y1 = buf[(index + 1) & mask]
        y2 = buf[(index + 2) & mask]
        y3 = buf[(index + 3) & mask]
        c0 = y1
        c1 = 0.5 * (y2 - y0)
        c2 = y0 - 2.5 * y1 + 2.0 * y2 - 0.5 * y3
        c3 = 0.5 * (y3 - y0) + 1.5 * (y1 - y2)
        frac = delta - math.floor(delta)
        out = ((c3 * frac + c2) * frac + c1) * frac + c0
        buf[self._frames & mask] = x + out * feedb
        self._frames = (self._frames + 1) & _UINT32_MASK
        return out

    def process(
        self,
        samples: MutableSequence[float],
        wet: float,
        delay: float,
        feedb: float,
        daft: float,
    ) -> MutableSequence[float]:
        """Process samples in place and return them."""
        if wet < 1e-9:
            return samples
        if daft > 0.001:
            delay *= 1.0 - daft
        delay *= float(self.MAX_SIZE)
        for i, x in enumerate(samples):
            samples[i] = x + wet * self.output(x, delay, feedb)
        return samples


class Chorus:
    """Stereo chorus made of two modulated flangers."""

    def __init__(self, sample_rate: float = 44100.0) -> None:
        self.sample_rate = sample_rate
        self._flang1 = Flanger()
        self._flang2 = Flanger()
        self._lfo = 0.0

    def reset(self) -> None:
        self._flang1.reset()
        self._flang2.reset()
        self._lfo = 0.0

    @staticmethod
    def _pseudo_sinf(x: float) -> float:
        x = x * x - 1.0
        return x * x

    def process(
        self,
        left: MutableSequence[float],
        right: MutableSequence[float],
        wet: float,
        delay: float,
        feedb: float,
        rate: float,
        mod: float,
    ) -> tuple[MutableSequence[float], MutableSequence[float]]:
        """Process both channels in place over the shorter length."""
        if wet < 1e-9:
            return left, right
        feedb *= 0.95
        d0 = 0.5 * delay * float(Flanger.MAX_SIZE)
        a1 = 0.99 * d0 * mod * mod
        r2 = 4.0 * math.pi * rate * rate / self.sample_rate
        for i in range(min(len(left), len(right))):
            lfo = a1 * self._pseudo_sinf(self._lfo)
            delay1 = d0 - lfo
            delay2 = d0 - lfo * 0.9
            x1, x2 = left[i], right[i]
            left[i] = x1 + wet * self._flang1.output(x1, delay1, feedb)
            right[i] = x2 + wet * self._flang2.output(x2, delay2, feedb)
            self._lfo += r2
            if self._lfo >= 1.0:
                self._lfo -= 2.0
        return left, right


class Delay:
    """Integer-sample feedback delay, optionally tempo-synced."""

    MIN_SIZE = 1 << 8
    MAX_SIZE = 1 << 16
    MAX_MASK = MAX_SIZE - 1

    def __init__(self, sample_rate: float = 44100.0) -> None:
        self.sample_rate = sample_rate
        self.reset()

    def reset(self) -> None:
        self._buffer = [0.0] * self.MAX_SIZE
        self._out = 0.0
        self._frames = 0

    def process(
        self,
        samples: MutableSequence[float],
        wet: float,
        delay: float,
        feedb: float,
        bpm: float = 0.0,
    ) -> MutableSequence[float]:
        """Process samples in place and return them."""
        if wet < 1e-9:
            return samples
        feedb *= 0.95
        delay_time = delay * self.sample_rate
        if bpm > 0.0:
            delay_time *= 60.0 / bpm
        ndelay = max(int(delay_time), 0)
        ndelay = min(max(ndelay, self.MIN_SIZE), self.MAX_SIZE)
        mask = self.MAX_MASK
        buf = self._buffer
        for i, x in enumerate(samples):
            j = self._frames & mask
            self._frames = (self._frames + 1) & _UINT32_MASK
            self._out = buf[(j - ndelay) & mask]
            buf[j] = x + self._out * feedb
            samples[i] = x + wet * self._out
        return samples


class AllPass:
    """First-order all-pass section."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._out = 0.0

    def output(self, x: float, delay: float) -> float:
        a1 = (1.0 - delay) / (1.0 + delay)
        out = self._out - a1 * x
        self._out = x + a1 * out
        return out


class Phaser:
    """Six-stage LFO-swept all-pass phaser."""

    MAX_TAPS = 6

    def __init__(self, sample_rate: float = 44100.0) -> None:
        self.sample_rate = sample_rate
        self._taps = [AllPass() for _ in range(self.MAX_TAPS)]
        self.reset()

    def reset(self) -> None:
        self._lfo_phase = 0.0
        self._out = 0.0
        for tap in self._taps:
            tap.reset()

    def process(
        self,
        samples: MutableSequence[float],
        wet: float,
        rate: float,
        feedb: float,
        depth: float,
        daft: float,
    ) -> MutableSequence[float]:
        """Process samples in place and return them."""
        if wet < 1e-9:
            return samples
        if 0.001 < daft < 1.0:
            rate *= 1.0 - 0.5 * daft
            depth *= 1.0 - daft
        depth += 1.0
        delay_min = 2.0 * 440.0 / self.sample_rate
        delay_max = 2.0 * 4400.0 / self.sample_rate
        lfo_inc = 2.0 * math.pi * rate / self.sample_rate
        adenormal = 1e-14 * fx_randf()
        two_pi = 2.0 * math.pi
        for i, x in enumerate(samples):
            delay = delay_min + (delay_max - delay_min) * 0.5 * (
                1.0 + math.sin(self._lfo_phase)
            )
            self._lfo_phase += lfo_inc
            if self._lfo_phase >= two_pi:
                self._lfo_phase -= two_pi
            out = x + adenormal + self._out * feedb
            for tap in self._taps:
                out = tap.output(out, delay)
            self._out = out
            samples[i] = x + wet * out * depth
        return samples