import pytest

from padsynth.tuning import Tuning, TuningError, parse_scale_line

KEYMAP_HEADER = ["! map size", "12", "0", "127", "60", "69", "432.0", "12"]


def _write(tmp_path, name, lines):
    path = tmp_path / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_default_reference_pitch():
    tuning = Tuning()
    assert tuning.ref_pitch == 440.0
    assert tuning.ref_note == 69
    assert tuning.note_to_pitch(69) == pytest.approx(440.0)


def test_equal_temperament_octaves_and_semitones():
    tuning = Tuning()
    assert tuning.note_to_pitch(81) / tuning.note_to_pitch(69) == pytest.approx(2.0)
    assert tuning.note_to_pitch(57) / tuning.note_to_pitch(69) == pytest.approx(0.5)
    ratio = tuning.note_to_pitch(70) / tuning.note_to_pitch(69)
    assert ratio ** 12 == pytest.approx(2.0)


@pytest.mark.parametrize("note", [-1, 128, 200])
def test_out_of_range_notes(note):
    assert Tuning().note_to_pitch(note) == 0.0


@pytest.mark.parametrize(
    "line, expected",
    [
        ("3/2", 1.5),
        ("2/1", 2.0),
        ("1200.0", 2.0),
        ("0.0", 0.0),
        ("-3/2", 0.0),
        ("abc", 0.0),
        ("5", 0.0),
    ],
)
def test_parse_scale_line(line, expected):
    assert parse_scale_line(line) == pytest.approx(expected)


def test_load_scale_file(tmp_path):
    path = _write(
        tmp_path,
        "fifths.scl",
        ["! fifths.scl", "!", "Fifth and octave", " 2", "!", " 3/2", " 2/1"],
    )
    tuning = Tuning()
    tuning.load_scale_file(path)
    assert tuning.scale_desc == "Fifth and octave"
    assert tuning.scale_file == str(path)
    assert tuning.note_to_pitch(69) == pytest.approx(440.0)
    assert tuning.note_to_pitch(71) / tuning.note_to_pitch(69) == pytest.approx(2.0)
    assert tuning.note_to_pitch(70) / tuning.note_to_pitch(69) == pytest.approx(2.0 / 1.5)


def test_scale_size_mismatch_raises_and_keeps_state(tmp_path):
    path = _write(tmp_path, "bad.scl", ["Broken", "3", "3/2", "2/1"])
    tuning = Tuning()
    with pytest.raises(TuningError):
        tuning.load_scale_file(path)
    assert tuning.scale_file == ""
    assert tuning.note_to_pitch(69) == pytest.approx(440.0)


def test_missing_scale_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Tuning().load_scale_file(tmp_path / "missing.scl")


def test_load_keymap_file(tmp_path):
    lines = KEYMAP_HEADER + ["< 0 127"] + [str(i) for i in range(12)]
    path = _write(tmp_path, "std.kbm", lines)
    tuning = Tuning()
    tuning.load_keymap_file(path)
    assert tuning.keymap_file == str(path)
    assert tuning.ref_note == 69
    assert tuning.ref_pitch == pytest.approx(432.0)
    assert tuning.note_to_pitch(69) == pytest.approx(432.0)
    assert tuning.note_to_pitch(81) / tuning.note_to_pitch(69) == pytest.approx(2.0)


def test_keymap_unmapped_key_gives_zero(tmp_path):
    lines = KEYMAP_HEADER + ["0", "x"] + [str(i) for i in range(2, 12)]
    tuning = Tuning()
    tuning.load_keymap_file(_write(tmp_path, "gap.kbm", lines))
    assert tuning.note_to_pitch(61) == 0.0
    assert tuning.note_to_pitch(62) > 0.0


def test_keymap_unmapped_reference_raises(tmp_path):
    entries = [str(i) for i in range(12)]
    entries[9] = "x"
    tuning = Tuning()
    with pytest.raises(TuningError):
        tuning.load_keymap_file(_write(tmp_path, "noref.kbm", KEYMAP_HEADER + entries))
    assert tuning.keymap_file == ""
    assert tuning.note_to_pitch(69) == pytest.approx(440.0)


def test_linear_keymap(tmp_path):
    lines = ["0", "0", "127", "60", "69", "432.0", "1"]
    tuning = Tuning()
    tuning.load_keymap_file(_write(tmp_path, "linear.kbm", lines))
    assert tuning.note_to_pitch(69) == pytest.approx(432.0)


def test_linear_keymap_with_entries_raises(tmp_path):
    lines = ["0", "0", "127", "60", "69", "432.0", "1", "0"]
    with pytest.raises(TuningError):
        Tuning().load_keymap_file(_write(tmp_path, "linear.kbm", lines))


def test_incomplete_keymap_raises(tmp_path):
    with pytest.raises(TuningError):
        Tuning().load_keymap_file(_write(tmp_path, "short.kbm", KEYMAP_HEADER[:-1]))


@pytest.mark.parametrize("bad", ["< 5 2", "< 0 200", "< -1 10"])
def test_bad_range_line_raises(tmp_path, bad):
    lines = KEYMAP_HEADER + [bad] + [str(i) for i in range(12)]
    with pytest.raises(TuningError):
        Tuning().load_keymap_file(_write(tmp_path, "range.kbm", lines))


def test_reset_restores_equal_temperament(tmp_path):
    lines = KEYMAP_HEADER + [str(i) for i in range(12)]
    tuning = Tuning()
    tuning.load_keymap_file(_write(tmp_path, "std.kbm", lines))
    tuning.reset(440.0, 69)
    assert tuning.note_to_pitch(69) == pytest.approx(440.0)
    assert tuning.note_to_pitch(81) / tuning.note_to_pitch(69) == pytest.approx(2.0)