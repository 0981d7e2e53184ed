"""Synth parameter table and XML preset, sample and tuning serialization."""

from __future__ import annotations

import contextlib
import errno
import os
import xml.etree.ElementTree as ET
import zlib
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

from . import sched as _sched
from .sample import Sample

PRESET_DOCTYPE = "padsynth"
PRESET_VERSION = "0.1.0"


class ParamType(IntEnum):
    FLOAT = 0
    INT = 1
    BOOL = 2


@dataclass(frozen=True)
class ParamInfo:
    """Name, type, default and range of one synth parameter."""

    name: str
    type: ParamType
    default: float
    min: float
    max: float


_F, _I, _B = ParamType.FLOAT, ParamType.INT, ParamType.BOOL

PARAMS: tuple[ParamInfo, ...] = tuple(
    ParamInfo(name, ptype, default, lo, hi)
    for name, ptype, default, lo, hi in (
        ("GEN1_SAMPLE1", _I, 60.0, 0.0, 127.0),
        ("GEN1_WIDTH1", _F, 40.0, 2.0, 200.0),
        ("GEN1_SCALE1", _F, 0.0, -1.0, 1.0),
        ("GEN1_NH1", _I, 32.0, 2.0, 64.0),
        ("GEN1_APOD1", _I, 4.0, 0.0, 4.0),
        ("GEN1_DETUNE1", _F, -0.1, -1.0, 1.0),
        ("GEN1_GLIDE1", _F, 0.0, 0.0, 1.0),
        ("GEN1_SAMPLE2", _I, 60.0, 0.0, 127.0),
        ("GEN1_WIDTH2", _F, 40.0, 2.0, 200.0),
        ("GEN1_SCALE2", _F, 0.0, -1.0, 1.0),
        ("GEN1_NH2", _I, 32.0, 2.0, 64.0),
        ("GEN1_APOD2", _I, 4.0, 0.0, 4.0),
        ("GEN1_DETUNE2", _F, 0.1, -1.0, 1.0),
        ("GEN1_GLIDE2", _F, 0.0, 0.0, 1.0),
        ("GEN1_BALANCE", _F, 0.0, -1.0, 1.0),
        ("GEN1_PHASE", _F, 0.0, 0.0, 1.0),
        ("GEN1_RINGMOD", _F, 0.0, 0.0, 1.0),
        ("GEN1_OCTAVE", _F, 0.0, -4.0, 4.0),
        ("GEN1_TUNING", _F, 0.0, -1.0, 1.0),
        ("GEN1_ENVTIME", _F, 0.5, 0.0, 1.0),
        ("DCF1_ENABLED", _B, 1.0, 0.0, 1.0),
        ("DCF1_CUTOFF", _F, 0.5, 0.0, 1.0),
        ("DCF1_RESO", _F, 0.0, 0.0, 1.0),
        ("DCF1_TYPE", _I, 0.0, 0.0, 3.0),
        ("DCF1_SLOPE", _I, 0.0, 0.0, 3.0),
        ("DCF1_ENVELOPE", _F, 1.0, -1.0, 1.0),
        ("DCF1_ATTACK", _F, 0.0, 0.0, 1.0),
        ("DCF1_DECAY", _F, 0.2, 0.0, 1.0),
        ("DCF1_SUSTAIN", _F, 0.5, 0.0, 1.0),
        ("DCF1_RELEASE", _F, 0.5, 0.0, 1.0),
        ("LFO1_ENABLED", _B, 1.0, 0.0, 1.0),
        ("LFO1_SHAPE", _I, 1.0, 0.0, 4.0),
        ("LFO1_WIDTH", _F, 1.0, 0.0, 1.0),
        ("LFO1_BPM", _F, 180.0, 0.0, 360.0),
        ("LFO1_RATE", _F, 0.5, 0.0, 1.0),
        ("LFO1_SYNC", _B, 0.0, 0.0, 1.0),
        ("LFO1_SWEEP", _F, 0.0, -1.0, 1.0),
        ("LFO1_PITCH", _F, 0.0, -1.0, 1.0),
        ("LFO1_BALANCE", _F, 0.0, -1.0, 1.0),
        ("LFO1_RINGMOD", _F, 0.0, -1.0, 1.0),
        ("LFO1_CUTOFF", _F, 0.0, -1.0, 1.0),
        ("LFO1_RESO", _F, 0.0, -1.0, 1.0),
        ("LFO1_PANNING", _F, 0.0, -1.0, 1.0),
        ("LFO1_VOLUME", _F, 0.0, -1.0, 1.0),
        ("LFO1_ATTACK", _F, 0.0, 0.0, 1.0),
        ("LFO1_DECAY", _F, 0.1, 0.0, 1.0),
        ("LFO1_SUSTAIN", _F, 1.0, 0.0, 1.0),
        ("LFO1_RELEASE", _F, 0.5, 0.0, 1.0),
        ("DCA1_VOLUME", _F, 0.5, 0.0, 1.0),
        ("DCA1_ATTACK", _F, 0.0, 0.0, 1.0),
        ("DCA1_DECAY", _F, 0.1, 0.0, 1.0),
        ("DCA1_SUSTAIN", _F, 1.0, 0.0, 1.0),
        ("DCA1_RELEASE", _F, 0.5, 0.0, 1.0),
        ("OUT1_WIDTH", _F, 0.0, -1.0, 1.0),
        ("OUT1_PANNING", _F, 0.0, -1.0, 1.0),
        ("OUT1_FXSEND", _F, 1.0, 0.0, 1.0),
        ("OUT1_VOLUME", _F, 0.5, 0.0, 1.0),
        ("DEF1_PITCHBEND", _F, 0.2, 0.0, 4.0),
        ("DEF1_MODWHEEL", _F, 0.2, 0.0, 1.0),
        ("DEF1_PRESSURE", _F, 0.2, 0.0, 1.0),
        ("DEF1_VELOCITY", _F, 0.2, 0.0, 1.0),
        ("DEF1_CHANNEL", _I, 0.0, 0.0, 16.0),
        ("DEF1_MONO", _I, 0.0, 0.0, 2.0),
        ("CHO1_WET", _F, 0.0, 0.0, 1.0),
        ("CHO1_DELAY", _F, 0.5, 0.0, 1.0),
        ("CHO1_FEEDB", _F, 0.5, 0.0, 1.0),
        ("CHO1_RATE", _F, 0.5, 0.0, 1.0),
        ("CHO1_MOD", _F, 0.5, 0.0, 1.0),
        ("FLA1_WET", _F, 0.0, 0.0, 1.0),
        ("FLA1_DELAY", _F, 0.5, 0.0, 1.0),
        ("FLA1_FEEDB", _F, 0.5, 0.0, 1.0),
        ("FLA1_DAFT", _F, 0.0, 0.0, 1.0),
        ("PHA1_WET", _F, 0.0, 0.0, 1.0),
        ("PHA1_RATE", _F, 0.5, 0.0, 1.0),
        ("PHA1_FEEDB", _F, 0.5, 0.0, 1.0),
        ("PHA1_DEPTH", _F, 0.5, 0.0, 1.0),
        ("PHA1_DAFT", _F, 0.0, 0.0, 1.0),
        ("DEL1_WET", _F, 0.0, 0.0, 1.0),
        ("DEL1_DELAY", _F, 0.5, 0.0, 1.0),
        ("DEL1_FEEDB", _F, 0.5, 0.0, 1.0),
        ("DEL1_BPM", _F, 180.0, 0.0, 360.0),
        ("REV1_WET", _F, 0.0, 0.0, 1.0),
        ("REV1_ROOM", _F, 0.5, 0.0, 1.0),
        ("REV1_DAMP", _F, 0.5, 0.0, 1.0),
        ("REV1_FEEDB", _F, 0.5, 0.0, 1.0),
        ("REV1_WIDTH", _F, 0.0, -1.0, 1.0),
        ("DYN1_COMPRESS", _B, 0.0, 0.0, 1.0),
        ("DYN1_LIMITER", _B, 1.0, 0.0, 1.0),
        ("KEY1_LOW", _I, 0.0, 0.0, 127.0),
        ("KEY1_HIGH", _I, 127.0, 0.0, 127.0),
    )
)

ParamIndex = IntEnum(  # type: ignore[misc]
    "ParamIndex",
    [(info.name, i) for i, info in enumerate(PARAMS)],
    module=__name__,
)

_BY_NAME = {info.name: ParamIndex(i) for i, info in enumerate(PARAMS)}


@dataclass
class TuningSettings:
    """Micro-tuning state stored in presets."""

    enabled: bool = False
    ref_pitch: float = 440.0
    ref_note: int = 69
    scale_file: str = ""
    keymap_file: str = ""


@dataclass
class Preset:
    """Contents of a loaded preset file."""

    name: str = ""
    version: str = ""
    values: dict = field(default_factory=dict)
    tuning: TuningSettings | None = None


# parameter helpers

def param_name(index: int) -> str:
    return PARAMS[index].name


def param_default_value(index: int) -> float:
    return PARAMS[index].default


def _rint(x: float) -> float:
    return float(round(x))


def param_safe_value(index: int, value: float) -> float:
    """Clamp value to the parameter range, rounding or thresholding by type."""
    info = PARAMS[index]
    if info.type == ParamType.BOOL:
        return 1.0 if value > 0.5 else 0.0
    if value < info.min:
        return info.min
    if value > info.max:
        return info.max
    return _rint(value) if info.type == ParamType.INT else float(value)


def param_value(index: int, scale: float) -> float:
    """Map a normalised scale in [0, 1] to the parameter's value."""
    info = PARAMS[index]
    if info.type == ParamType.BOOL:
        return 1.0 if scale > 0.5 else 0.0
    value = info.min + scale * (info.max - info.min)
    return _rint(value) if info.type == ParamType.INT else value


def param_scale(index: int, value: float) -> float:
    """Map a parameter value to its normalised scale."""
    info = PARAMS[index]
    if info.type == ParamType.BOOL:
        return 1.0 if value > 0.5 else 0.0
    scale = (value - info.min) / (info.max - info.min)
    return _rint(scale) if info.type == ParamType.INT else scale


def param_float(index: int) -> bool:
    return PARAMS[index].type == ParamType.FLOAT


def find_param(name: str) -> ParamIndex | None:
    """Return the parameter with the given name, or None."""
    return _BY_NAME.get(name)


# text conversion helpers

def _to_int(text: str | None) -> int:
    try:
        return int((text or "").strip())
    except ValueError:
        return 0


def _to_float(text: str | None) -> float:
    try:
        return float((text or "").strip())
    except ValueError:
        return 0.0


def _text(element: ET.Element) -> str:
    return "".join(element.itertext())


def _number(value: float) -> str:
    return f"{value:g}"


@contextlib.contextmanager
def _working_directory(path: str) -> Iterator[None]:
    previous = os.getcwd()
    os.chdir(path)
    try:
        yield
    finally:
        os.chdir(previous)


def _relative(path: str) -> str:
    try:
        return os.path.relpath(path, os.getcwd())
    except ValueError:
        return path


# samples

def load_samples(samples: Sequence[Sample | None], element: ET.Element) -> None:
    """Restore harmonic profiles from a <samples> element."""
    by_index = dict(enumerate(samples))
    for e_sample in element.iter("sample"):
        sample = by_index.get(_to_int(e_sample.get("index")))
        if sample is None:
            continue
        sample.reset()
        sample.reset_nh(max(_to_int(e_sample.get("nh")), 0))
        for e_items in e_sample.findall("items"):
            for e_item in e_items.findall("item"):
                n = _to_int(e_item.get("index"))
                sample.set_harmonic(n, _to_float(_text(e_item)))


def save_samples(samples: Sequence[Sample | None], element: ET.Element) -> None:
    """Append the harmonic profile of each sample to a <samples> element."""
    for index, sample in enumerate(samples):
        if sample is None:
            continue
        e_sample = ET.SubElement(element, "sample")
        e_sample.set("index", str(index))
        e_sample.set("nh", str(sample.nh))
        e_items = ET.SubElement(e_sample, "items")
        for n in range(sample.nh):
            e_item = ET.SubElement(e_items, "item")
            e_item.set("index", str(n))
            e_item.text = _number(sample.harmonic(n))


# tuning

def load_tuning(element: ET.Element) -> TuningSettings:
    """Read tuning settings from a <tuning> element."""
    settings = TuningSettings(enabled=_to_int(element.get("enabled")) > 0)
    for child in element:
        if child.tag == "enabled":
            settings.enabled = _to_int(_text(child)) > 0
        elif child.tag == "ref-pitch":
            settings.ref_pitch = _to_float(_text(child))
        elif child.tag == "ref-note":
            settings.ref_note = _to_int(_text(child))
        elif child.tag == "scale-file":
            settings.scale_file = load_filename(_text(child))
        elif child.tag == "keymap-file":
            settings.keymap_file = load_filename(_text(child))
    return settings


def save_tuning(
    settings: TuningSettings, element: ET.Element, symlink: bool = False
) -> None:
    """Write tuning settings into a <tuning> element."""
    element.set("enabled", str(int(settings.enabled)))
    ET.SubElement(element, "ref-pitch").text = _number(settings.ref_pitch)
    ET.SubElement(element, "ref-note").text = str(int(settings.ref_note))
    for tag, filename in (
        ("scale-file", settings.scale_file),
        ("keymap-file", settings.keymap_file),
    ):
        if filename:
            ET.SubElement(element, tag).text = _relative(
                save_filename(filename, symlink)
            )


# presets

def load_preset(
    filename: str | os.PathLike[str], samples: Sequence[Sample | None] = ()
) -> Preset:
    """Read a preset file; sample harmonics are loaded into samples."""
    path = os.path.abspath(os.fspath(filename))
    if not os.path.exists(path):
        raise FileNotFoundError(errno.ENOENT, "preset file not found", path)
    with open(path, "rb") as fh:
        data = fh.read()

    preset = Preset()
    _sched.sync_reset()
    with _working_directory(os.path.dirname(path)):
        try:
            root: ET.Element | None = ET.fromstring(data)
        except ET.ParseError:
            root = None
        if root is not None and root.tag == "preset":
            preset.name = root.get("name", "")
            preset.version = root.get("version", "")
            for child in root:
                if child.tag == "params":
                    _load_params(preset.values, child)
                elif child.tag == "samples":
                    load_samples(samples, child)
                elif child.tag == "tuning":
                    preset.tuning = load_tuning(child)
    _sched.sync_pending()
    return preset


def _load_params(values: dict, element: ET.Element) -> None:
    for e_param in element.findall("param"):
        name = e_param.get("name", "")
        if name:
            index = find_param(name)
            if index is None:
                continue
        else:
            raw = _to_int(e_param.get("index"))
            if not 0 <= raw < len(PARAMS):
                continue
            index = ParamIndex(raw)
        values[index] = param_safe_value(index, _to_float(_text(e_param)))


def save_preset(
    filename: str | os.PathLike[str],
    values: Mapping[int, float] | None = None,
    samples: Sequence[Sample | None] = (),
    tuning: TuningSettings | None = None,
    symlink: bool = False,
) -> None:
    """Write a preset file; missing parameter values are saved as defaults."""
    path = os.path.abspath(os.fspath(filename))
    values = values or {}
    root = ET.Element("preset")
    root.set("name", Path(path).stem)
    root.set("version", PRESET_VERSION)
    with _working_directory(os.path.dirname(path)):
        save_samples(samples, ET.SubElement(root, "samples"))
        e_params = ET.SubElement(root, "params")
        for index in ParamIndex:
            e_param = ET.SubElement(e_params, "param")
            e_param.set("index", str(int(index)))
            e_param.set("name", param_name(index))
            e_param.text = _number(values.get(index, param_default_value(index)))
        if tuning is not None and tuning.enabled:
            save_tuning(tuning, ET.SubElement(root, "tuning"), symlink)
        ET.indent(root, space=" ")
        text = f"<!DOCTYPE {PRESET_DOCTYPE}>\n" + ET.tostring(root, encoding="unicode")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(text + "\n")


# filenames

def load_filename(filename: str | os.PathLike[str]) -> str:
    """Canonical absolute path with links resolved, or "" if it does not exist."""
    path = os.fspath(filename)
    if not path or not os.path.exists(path):
        return ""
    return os.path.realpath(path)


def save_filename(filename: str | os.PathLike[str], symlink: bool = False) -> str:
    """Absolute path to store; with symlink, link files from other directories here."""
    path = os.path.abspath(os.fspath(filename))
    cwd = os.getcwd()
    if symlink and os.path.dirname(path) != cwd:
        name, _, ext = os.path.basename(path).partition(".")
        link = f"{name}-{zlib.crc32(path.encode('utf-8')):x}.{ext}"
        with contextlib.suppress(OSError):
            os.symlink(path, link)
        return os.path.join(cwd, link)
    if os.path.islink(path):
        return os.path.realpath(path)
    return path