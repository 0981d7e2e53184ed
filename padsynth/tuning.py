"""Scala scale (.scl) and key-map (.kbm) based note-to-pitch tuning."""

from __future__ import annotations

import math
import os
import re
from collections.abc import Callable

_INT_RE = re.compile(r"[+-]?\d+")


class TuningError(ValueError):
    """Raised when a scale or key-map file cannot be used."""


def _simplified(line: str) -> str:
    return " ".join(line.split())


def _section(line: str, sep: str, index: int) -> str:
    parts = line.split(sep)
    return parts[index] if index < len(parts) else ""


def _to_int(text: str) -> int | None:
    text = text.strip()
    return int(text) if _INT_RE.fullmatch(text) else None


def _to_float(text: str) -> float | None:
    text = text.strip()
    if not text or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _is_note(value: int) -> bool:
    return 0 <= value <= 127


def _read_lines(filename: str | os.PathLike[str]) -> list[str]:
    with open(filename, encoding="utf-8", errors="replace") as fs:
        return [_simplified(line) for line in fs.read().splitlines()]


def parse_scale_line(line: str) -> float:
    """Convert one scale line (cents or ratio) to a frequency ratio; 0.0 if invalid."""
    line = _simplified(line)
    if "." in line:
        cents = _to_float(_section(line, " ", 0))
        if cents is None or cents < 0.001:
            return 0.0
        return 2.0 ** (cents / 1200.0)
    n = _to_int(_section(line, "/", 0))
    if n is None or n < 0:
        return 0.0
    d = _to_int(_section(line, "/", 1))
    if d is None or d < 0:
        return 0.0
    if d == 0:
        return math.inf if n else math.nan
    return float(n) / float(d)


_KEYMAP_HEADER: tuple[tuple[str, Callable[[str], object], Callable[[object], bool]], ...] = (
    ("map size", _to_int, lambda v: v >= 0),
    ("first note", _to_int, _is_note),
    ("last note", _to_int, _is_note),
    ("zero note", _to_int, _is_note),
    ("reference note", _to_int, _is_note),
    ("reference pitch", _to_float, lambda v: v >= 0.001),
    ("octave degree", _to_int, lambda v: v >= 0),
)


class Tuning:
    """Maps MIDI notes through a key map and a scale to pitches in Hz."""

    def __init__(self, ref_pitch: float = 440.0, ref_note: int = 69) -> None:
        self._keymap_file = ""
        self._scale_file = ""
        self._scale_desc = ""
        self.reset(ref_pitch, ref_note)

    @property
    def ref_pitch(self) -> float:
        return self._ref_pitch

    @property
    def ref_note(self) -> int:
        return self._ref_note

    @property
    def keymap_file(self) -> str:
        return self._keymap_file

    @property
    def scale_file(self) -> str:
        return self._scale_file

    @property
    def scale_desc(self) -> str:
        return self._scale_desc

    def reset(self, ref_pitch: float, ref_note: int) -> None:
        """Restore 12-tone equal temperament with the standard mapping."""
        self._ref_pitch = float(ref_pitch)
        self._ref_note = int(ref_note)
        self._zero_note = 0
        self._scale = [2.0 ** ((i + 1) / 12.0) for i in range(12)]
        self._map_repeat_inc = 1
        self._mapping = [0]
        self._update_base_pitch()

    def _update_base_pitch(self) -> None:
        self._base_pitch = 1.0
        pitch = self.note_to_pitch(self._ref_note)
        self._base_pitch = self._ref_pitch / pitch if pitch else math.inf

    def load_keymap_file(self, filename: str | os.PathLike[str]) -> None:
        """Load a Scala key map; raises TuningError if it is invalid."""
        header: list = []
        mapping: list[int] = []
        for line in _read_lines(filename):
            if not line or line.startswith("!"):
                continue
            val = _section(line, " ", 0)
            if line.startswith("<"):
                low = _to_int(_section(line, " ", 1))
                if low is None or low < 0:
                    raise TuningError(f"invalid range line: {line!r}")
                high = _to_int(_section(line, " ", 2))
                if high is None or high < low or high > 127:
                    raise TuningError(f"invalid range line: {line!r}")
            elif len(header) < len(_KEYMAP_HEADER):
                name, convert, valid = _KEYMAP_HEADER[len(header)]
                value = convert(val)
                if value is None or not valid(value):
                    raise TuningError(f"invalid {name}: {val!r}")
                header.append(value)
            elif line[0].lower() == "x":
                mapping.append(-1)
            else:
                entry = _to_int(val)
                if entry is None or entry < 0:
                    raise TuningError(f"invalid mapping entry: {val!r}")
                mapping.append(entry)

        if len(header) < len(_KEYMAP_HEADER):
            raise TuningError("key map is incomplete")
        map_size, _first, _last, zero_note, ref_note, ref_pitch, repeat_inc = header

        if map_size == 0:
            if mapping:
                raise TuningError("linear key map must not list entries")
            repeat_inc = 1
            mapping = [0]
        else:
            mapping = (mapping + [0] * map_size)[:map_size]
            if mapping[(ref_note - zero_note) % map_size] < 0:
                raise TuningError("reference note is not mapped")
            if repeat_inc == 0:
                repeat_inc = map_size

        self._keymap_file = os.fspath(filename)
        self._zero_note = zero_note
        self._ref_note = ref_note
        self._ref_pitch = ref_pitch
        self._map_repeat_inc = repeat_inc
        self._mapping = mapping
        self._update_base_pitch()

    def load_scale_file(self, filename: str | os.PathLike[str]) -> None:
        """Load a Scala scale; raises TuningError if it is invalid."""
        desc = ""
        size: int | None = None
        scale: list[float] = []
        for line in _read_lines(filename):
            if not line or line.startswith("!"):
                continue
            if not desc:
                desc = line
            elif size is None:
                size = _to_int(_section(line, " ", 0))
                if size is None or size < 0:
                    raise TuningError(f"invalid scale size: {line!r}")
            else:
                scale.append(parse_scale_line(line))

        if not desc or size is None or len(scale) != size:
            raise TuningError("scale description or degrees are missing")
        if not scale:
            raise TuningError("scale has no degrees")

        self._scale_file = os.fspath(filename)
        self._scale_desc = desc
        self._scale = scale
        self._update_base_pitch()

    def note_to_pitch(self, note: int) -> float:
        """Return the pitch in Hz of a MIDI note, or 0.0 if unmapped."""
        if note < 0 or note > 127 or not self._mapping:
            return 0.0
        n_repeats, map_index = divmod(note - self._zero_note, len(self._mapping))
        entry = self._mapping[map_index]
        if entry < 0:
            return 0.0
        degree = n_repeats * self._map_repeat_inc + entry
        n_octaves, scale_index = divmod(degree, len(self._scale))
        pitch = self._base_pitch * self._scale[-1] ** n_octaves
        if scale_index > 0:
            return pitch * self._scale[scale_index - 1]
        return pitch