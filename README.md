# padsynth

Building blocks for a PADsynth-style polyphonic synthesizer, in Python with
NumPy.

## Modules

- `padsynth.sample`: PADsynth wave tables. `Sample` builds a table from a
  harmonic profile (`set_harmonic`, `harmonic`, `reset_nh`) by inverse FFT,
  shaping each harmonic with an `Apodizer` (`RECT`, `TRIANG`, `WELCH`,
  `HANN`, `GAUSS`). `reset_sync` rebuilds at once; `reset_test` rebuilds only
  when a parameter changed or `reset()` was called, either directly or through
  an optional `scheduler` callable given to the constructor. `Generator`
  plays a `Sample` with its own running phase, and `SampleRefs` keeps a
  reference-counted play list in which the newest sample is never dropped.
  `fast_log2f`, `fast_pow2f` and `fast_powf` are the bit-level approximations
  used for harmonic spacing.
- `padsynth.wave`: smoothed wave tables. `Wave` builds `Shape.PULSE`, `SAW`,
  `SINE`, `RAND` and `NOISE` tables; `LfoWave` is the unsmoothed variant for
  LFOs. `Wave.start` and `Wave.sample` return `(value, next_phase)`;
  `Oscillator` keeps the phase for you.
- `padsynth.fx`: RBJ biquad `Filter` (`FilterType`), `Compressor`,
  `Flanger`, `Chorus`, `Delay`, `AllPass` and `Phaser`. The `process`
  methods change the given sequence in place and return it.
- `padsynth.tuning`: `Tuning` maps MIDI notes to pitches in Hz through Scala
  scale (`.scl`) and key-map (`.kbm`) files. Invalid files raise
  `TuningError`. `parse_scale_line` converts one scale line (cents or ratio).
- `padsynth.param`: the parameter table (`ParamIndex`, `ParamInfo`,
  `ParamType`) with `param_name`, `param_default_value`, `param_safe_value`,
  `param_value`, `param_scale`, `param_float` and `find_param`; XML presets
  with `load_preset` (returns a `Preset`) and `save_preset`; sample and
  tuning sections with `load_samples`, `save_samples`, `load_tuning`,
  `save_tuning` (`TuningSettings`); and `load_filename` / `save_filename`
  for stored file paths.
- `padsynth.programs`: MIDI bank/program database (`Programs`, `Bank`,
  `Prog`). Selecting a program, when `enabled` is true, runs the `loader`
  callable given to `Programs` on the background worker.
- `padsynth.sched`: a shared background worker thread. Subclass `Scheduled`
  and implement `process(sid)`; `Notifier` receives a callback for each
  finished job of an instance. `sync_pending()` runs pending jobs on the
  calling thread and `sync_reset()` drops them.
- `padsynth.nsm`: `NsmClient`, a session-management client. Given an
  `osc.udp://host:port/` URL it sends and receives OSC over UDP; given a
  `sender` callable it hands outgoing messages to that instead. Incoming
  messages go through `dispatch`, and `connect` registers callbacks for the
  `active`, `open`, `save`, `loaded`, `show` and `hide` signals.
  `ReplyCode` and `reply_message` give the reply codes and their text.

## Installation

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Examples

Tuning:

```python
from padsynth.tuning import Tuning

tuning = Tuning()                # 12-TET, A4 = 440 Hz
tuning.note_to_pitch(69)         # about 440.0
tuning.load_scale_file("just.scl")
tuning.note_to_pitch(60)
```

A PADsynth table:

```python
from padsynth.sample import Apodizer, Generator, Sample

sample = Sample(sid=0, nsize=1 << 14)
sample.reset_sync(freq0=261.63, width=40.0, scale=0.0, nh=32, apod=Apodizer.GAUSS)
gen = Generator(sample)
first = gen.start()
nxt = gen.sample(261.63)
```

Effects, working in place on a list of samples:

```python
from padsynth.fx import Delay

delay = Delay(44100.0)
block = [0.0] * 512
block[0] = 1.0
delay.process(block, wet=0.5, delay=0.25, feedb=0.5, bpm=0.0)
```

Parameters:

```python
from padsynth.param import ParamIndex, param_name, param_safe_value

param_name(ParamIndex.DCF1_CUTOFF)               # "DCF1_CUTOFF"
param_safe_value(ParamIndex.GEN1_NH1, 100.0)     # 64.0
```

## What it does not do

This package provides components, not a playable instrument. It has no
voice engine, MIDI input handling or audio output, no plugin or standalone
host, no graphical interface and no command-line program. `load_preset`
returns the values it read; applying them to a synth is left to the caller.