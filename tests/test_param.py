import os
import xml.etree.ElementTree as ET

import pytest

from padsynth.param import (
    PARAMS,
    ParamIndex,
    ParamType,
    Preset,
    TuningSettings,
    find_param,
    load_filename,
    load_preset,
    load_samples,
    load_tuning,
    param_default_value,
    param_float,
    param_name,
    param_safe_value,
    param_scale,
    param_value,
    save_filename,
    save_preset,
    save_samples,
    save_tuning,
)
from padsynth.sample import Apodizer, Sample


def _built_sample(sid, nh=4):
    sample = Sample(sid, 64)
    sample.reset_sync(440.0, 40.0, 0.0, nh, Apodizer.GAUSS)
    return sample


def test_names_round_trip_through_find_param():
    for index in ParamIndex:
        assert param_name(index) == index.name
        assert find_param(param_name(index)) == index
    assert find_param("NO_SUCH_PARAM") is None


def test_defaults_are_safe_values():
    for index in ParamIndex:
        default = param_default_value(index)
        assert param_safe_value(index, default) == default


def test_safe_value_clamps_to_range():
    for index in ParamIndex:
        info = PARAMS[index]
        if info.type == ParamType.BOOL:
            continue
        assert param_safe_value(index, info.min - 100.0) == info.min
        assert param_safe_value(index, info.max + 100.0) == info.max


def test_bool_params_threshold():
    assert param_safe_value(ParamIndex.DCF1_ENABLED, 0.7) == 1.0
    assert param_safe_value(ParamIndex.DCF1_ENABLED, 0.3) == 0.0
    assert param_value(ParamIndex.DYN1_LIMITER, 0.9) == 1.0


def test_int_params_are_rounded():
    for index in ParamIndex:
        if PARAMS[index].type == ParamType.INT:
            info = PARAMS[index]
            mid = 0.5 * (info.min + info.max) + 0.3
            assert param_safe_value(index, mid).is_integer()
            assert param_value(index, 0.37).is_integer()


def test_value_scale_ends_and_round_trip():
    for index in ParamIndex:
        info = PARAMS[index]
        if info.type == ParamType.BOOL:
            continue
        assert param_value(index, 0.0) == info.min
        assert param_value(index, 1.0) == info.max
        if info.type == ParamType.FLOAT:
            assert param_scale(index, param_value(index, 0.25)) == pytest.approx(0.25)


def test_param_float_matches_type():
    for index in ParamIndex:
        assert param_float(index) == (PARAMS[index].type == ParamType.FLOAT)


def test_samples_round_trip():
    src = [_built_sample(0), _built_sample(1)]
    src[0].set_harmonic(0, 0.5)
    src[1].set_harmonic(2, 0.25)
    element = ET.Element("samples")
    save_samples(src, element)
    dst = [Sample(0, 64), Sample(1, 64)]
    load_samples(dst, element)
    for a, b in zip(src, dst):
        assert b.nh_max == a.nh
        for n in range(a.nh):
            assert b.harmonic(n) == pytest.approx(a.harmonic(n), rel=1e-5)


def test_load_samples_ignores_unknown_index():
    target = Sample(0, 64)
    before = [target.harmonic(n) for n in range(target.nh_max)]
    element = ET.fromstring(
        '<samples><sample index="5" nh="4"><items>'
        '<item index="0">9</item></items></sample></samples>'
    )
    load_samples([target], element)
    assert [target.harmonic(n) for n in range(target.nh_max)] == before


def test_tuning_round_trip_without_files():
    settings = TuningSettings(enabled=True, ref_pitch=432.0, ref_note=60)
    element = ET.Element("tuning")
    save_tuning(settings, element, False)
    assert load_tuning(element) == settings


def test_tuning_scale_file_relative_and_resolved(tmp_path, monkeypatch):
    scale = tmp_path / "scale.scl"
    scale.write_text("desc\n0\n")
    monkeypatch.chdir(tmp_path)
    settings = TuningSettings(enabled=True, scale_file=str(scale))
    element = ET.Element("tuning")
    save_tuning(settings, element, False)
    assert element.find("scale-file").text == scale.name
    loaded = load_tuning(element)
    assert loaded.scale_file == os.path.realpath(scale)
    assert loaded.keymap_file == ""


def test_load_filename(tmp_path):
    target = tmp_path / "target.kbm"
    target.write_text("x")
    link = tmp_path / "link.kbm"
    os.symlink(target, link)
    assert load_filename(tmp_path / "missing.kbm") == ""
    assert load_filename(link) == os.path.realpath(target)


def test_save_filename_links_into_current_dir(tmp_path, monkeypatch):
    other = tmp_path / "other"
    other.mkdir()
    here = tmp_path / "here"
    here.mkdir()
    source = other / "tune.scl"
    source.write_text("x")
    monkeypatch.chdir(here)
    result = save_filename(str(source), True)
    assert os.path.dirname(result) == os.getcwd()
    assert os.path.islink(result)
    assert os.path.realpath(result) == os.path.realpath(source)
    assert save_filename(str(source), False) == str(source)


def test_preset_round_trip(tmp_path):
    path = tmp_path / "bright.preset"
    samples = [_built_sample(0), _built_sample(1)]
    samples[0].set_harmonic(1, 0.5)
    tuning = TuningSettings(enabled=True, ref_pitch=432.0, ref_note=60)
    save_preset(path, {ParamIndex.GEN1_WIDTH1: 55.0}, samples, tuning, False)

    loaded = [Sample(0, 64), Sample(1, 64)]
    preset = load_preset(path, loaded)
    assert isinstance(preset, Preset)
    assert preset.name == path.stem
    assert preset.values[ParamIndex.GEN1_WIDTH1] == 55.0
    for index in ParamIndex:
        if index != ParamIndex.GEN1_WIDTH1:
            assert preset.values[index] == pytest.approx(param_default_value(index))
    assert preset.tuning == tuning
    assert loaded[0].harmonic(1) == pytest.approx(0.5)
    assert ET.parse(path).getroot().tag == "preset"


def test_disabled_tuning_is_not_saved(tmp_path):
    path = tmp_path / "plain.preset"
    save_preset(path, {}, (), TuningSettings(enabled=False), False)
    assert load_preset(path).tuning is None


def test_load_preset_clamps_and_skips_unknown(tmp_path):
    path = tmp_path / "manual.preset"
    index = int(ParamIndex.GEN1_NH1)
    path.write_text(
        f'<preset name="manual"><params><param index="{index}">1000</param>'
        '<param name="BOGUS">1</param></params></preset>'
    )
    preset = load_preset(path)
    assert preset.values == {ParamIndex.GEN1_NH1: PARAMS[ParamIndex.GEN1_NH1].max}


def test_load_preset_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_preset(tmp_path / "absent.preset")


def test_working_directory_is_restored(tmp_path, monkeypatch):
    sub = tmp_path / "presets"
    sub.mkdir()
    monkeypatch.chdir(tmp_path)
    before = os.getcwd()
    save_preset(sub / "a.preset")
    assert os.getcwd() == before
    preset = load_preset(sub / "a.preset")
    assert os.getcwd() == before
    assert preset.name == "a"