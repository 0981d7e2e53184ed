import math

import pytest

from padsynth.sample import (
    Apodizer,
    Generator,
    Sample,
    SampleRefs,
    fast_log2f,
    fast_pow2f,
    fast_powf,
)

N = 4096


def built(sid=0, width=40.0, apod=Apodizer.GAUSS):
    s = Sample(sid, N)
    s.reset_sync(440.0, width, 0.0, 32, apod)
    return s


def test_fast_math_approximations():
    assert fast_log2f(8.0) == pytest.approx(3.0, abs=1e-3)
    assert fast_pow2f(3.0) == pytest.approx(8.0, rel=1e-3)
    assert fast_powf(2.0, 0.5) == pytest.approx(math.sqrt(2.0), rel=1e-3)


def test_default_harmonics_even_and_odd():
    even = Sample(0, N)
    odd = Sample(1, N)
    assert even.nh_max == Sample.DEFAULT_NH
    assert even.harmonic(0) == pytest.approx(1.0)
    assert even.harmonic(1) == pytest.approx(0.5)
    assert odd.harmonic(1) == pytest.approx(1.667 / 2.0)
    assert even.harmonic(2) == pytest.approx(1.667 / 3.0)


def test_harmonic_out_of_range_and_reset_nh():
    s = Sample(0, N)
    s.set_harmonic(1000, 5.0)
    assert s.harmonic(1000) == 0.0
    s.set_harmonic(3, 0.9)
    assert s.harmonic(3) == 0.9
    s.reset_nh(8)
    assert s.nh_max == 8
    assert s.harmonic(3) == Sample(0, N).harmonic(3)
    s.reset_nh(0)
    assert s.nh_max == Sample.DEFAULT_NH


@pytest.mark.parametrize("apod", list(Apodizer))
def test_table_is_normalized(apod):
    s = built(apod=apod)
    values = [s.value(i / N) for i in range(N)]
    assert max(abs(v) for v in values) == pytest.approx(1.0)
    assert max(values) + min(values) == pytest.approx(0.0, abs=1e-9)


def test_phase_zero_is_rising_crossing():
    s = built()
    assert s.phase0 > 0.0
    assert s.value(0.0) >= 0.0
    assert s.value(1.0 - 1.0 / N) < 0.0


def test_build_is_deterministic_and_width_dependent():
    a, b, c = built(), built(), built(width=80.0)
    va = [a.value(i / N) for i in range(0, N, 7)]
    assert va == [b.value(i / N) for i in range(0, N, 7)]
    assert va != [c.value(i / N) for i in range(0, N, 7)]


def test_reset_test_schedules_only_on_change():
    calls = []

    def scheduler(sample, *args):
        calls.append(args)
        sample.reset_sync(*args)

    s = Sample(0, N, scheduler)
    s.reset_test(440.0, 40.0, 0.0, 32, Apodizer.GAUSS)
    assert len(calls) == 1
    assert (s.freq0, s.width, s.nh) == (440.0, 40.0, 32)
    s.reset_test(440.0, 40.0, 0.0, 32, Apodizer.GAUSS)
    assert len(calls) == 1
    s.reset()
    s.reset_test(440.0, 40.0, 0.0, 32, Apodizer.GAUSS)
    assert len(calls) == 2
    s.reset_test(220.0, 40.0, 0.0, 32, Apodizer.GAUSS)
    assert calls[-1][0] == 220.0
    assert (s.freq0, s.apod) == (220.0, Apodizer.GAUSS)


def test_default_scheduler_builds_synchronously():
    s = Sample(0, N)
    s.reset_test(330.0, 20.0, 0.5, 16, Apodizer.HANN)
    assert (s.freq0, s.width, s.scale, s.nh, s.apod) == (330.0, 20.0, 0.5, 16, Apodizer.HANN)


def test_sample_requires_built_table():
    with pytest.raises(RuntimeError):
        Sample(0, N).sample(0.0, 440.0)


def test_start_and_sample_phase_advance():
    s = built()
    _, phase = s.start(0.0, 0.0)
    assert phase == s.phase0
    _, phase = s.start(0.0, 440.0)
    assert phase == pytest.approx(s.phase0 + 1.0)
    _, shifted = s.start(0.5, 0.0)
    assert shifted == pytest.approx((s.phase0 + N / 2) % N)


def test_generator_matches_sample():
    s = built()
    g = Generator(s)
    v0, phase = s.start(0.0, 440.0)
    assert g.start(0.0, 440.0) == v0
    v1, _ = s.sample(phase, 880.0)
    assert g.sample(880.0) == v1


def test_copy_keeps_harmonics_and_rate():
    s = Sample(1, N)
    s.sample_rate = 48000.0
    s.set_harmonic(2, 0.125)
    c = s.copy()
    assert c.sid == 1 and c.size == N
    assert c.sample_rate == 48000.0
    assert c.harmonic(2) == 0.125


def test_sample_refs_lifecycle():
    refs = SampleRefs()
    a, b = Sample(0, 16), Sample(0, 16)
    refs.append(a)
    refs.append(b)
    assert refs.next() is a and refs.prev() is b
    refs.acquire()
    refs.free_refs()
    assert refs.next() is a
    refs.release()
    assert refs.next() is b and len(refs) == 1
    refs.free_refs()
    assert len(refs) == 1
    refs.clear_refs(True)
    with pytest.raises(IndexError):
        refs.next()