import random
from unittest import mock

import mido
import pytest

from botplugins.midi import (
    EarTrainingGame,
    Outcome,
    make_midi,
    midi_to_text,
    note_name,
    note_octave,
    parse_note,
    render_wav,
    str_to_music,
    timbre_key,
    validate_timbre,
)


def _roundtrip(tmp_path, text):
    path = tmp_path / "song.mid"
    make_midi(text, path)
    return midi_to_text(path.read_bytes(), 0)


def test_parse_note_defaults_to_octave_five():
    assert parse_note("C") == 60
    assert parse_note("A") == 69
    assert parse_note("C5") == parse_note("C")


def test_parse_note_sharp_equals_next_flat():
    assert parse_note("C#6") == parse_note("Db6")


def test_note_octave_zero_returns_base():
    assert note_octave(7, 0) == 7
    assert note_octave(0, 5) == 60


def test_note_octave_clamps_to_midi_range():
    assert note_octave(11, 10) <= 127
    assert note_octave(11, 200) == note_octave(11, 10)


def test_note_name_prefers_flats():
    assert note_name(61) == "Db"
    assert note_name(60 + 12) == "C"


@pytest.mark.parametrize("text", ["CDE", "CRD", "C<1D<-1", "C6E4", "GGAAG"])
def test_midi_text_roundtrip(tmp_path, text):
    assert _roundtrip(tmp_path, text) == text


def test_sharp_comes_back_as_flat(tmp_path):
    assert _roundtrip(tmp_path, "C#") == "Db"


def test_make_midi_contents(tmp_path):
    path = tmp_path / "a.mid"
    make_midi("CDE", path, timbre=40)
    midi = mido.MidiFile(str(path))
    assert midi.ticks_per_beat == 960
    msgs = list(midi.tracks[0])
    ons = [m for m in msgs if m.type == "note_on"]
    assert [m.note for m in ons] == [60, 62, 64]
    assert all(m.velocity == 120 for m in ons)
    programs = [m.program for m in msgs if m.type == "program_change"]
    assert programs == [40]
    tempos = [m.tempo for m in msgs if m.type == "set_tempo"]
    assert tempos == [mido.bpm2tempo(72)]


def test_make_midi_rejects_unknown_character(tmp_path):
    with pytest.raises(ValueError):
        make_midi("CXD", tmp_path / "bad.mid")


def test_make_midi_keeps_existing_file(tmp_path):
    path = tmp_path / "kept.mid"
    path.write_bytes(b"x")
    make_midi("CDE", path)
    assert path.read_bytes() == b"x"


def test_midi_to_text_missing_track(tmp_path):
    path = tmp_path / "s.mid"
    make_midi("C", path)
    assert midi_to_text(path.read_bytes(), 3) == ""


def test_render_wav_runs_timidity(tmp_path):
    midi_path = tmp_path / "x.mid"
    with mock.patch("botplugins.midi.subprocess.run") as run:
        wav = render_wav(midi_path)
    assert wav.endswith("x.wav")
    args = run.call_args[0][0]
    assert args[0] == "timidity"
    assert "-Ow" in args


def test_str_to_music_writes_midi_and_renders(tmp_path):
    midi_path = tmp_path / "m.mid"
    with mock.patch("botplugins.midi.subprocess.run") as run:
        wav = str_to_music("CDE", midi_path)
    assert midi_path.exists()
    assert wav == str(midi_path).replace(".mid", ".wav")
    assert run.call_count == 1


def test_validate_timbre():
    assert validate_timbre(127) == 127
    with pytest.raises(ValueError):
        validate_timbre(128)
    with pytest.raises(ValueError):
        validate_timbre(-1)


def test_timbre_key():
    assert timbre_key(123, 9) == 123
    assert timbre_key(0, 9) == -9


def _wrong(game):
    return "C" if game.target != 60 else "D"


def test_answer_parses_back_to_target():
    game = EarTrainingGame(rng=random.Random(1))
    assert parse_note(game.answer()) == game.target
    assert 55 <= game.target < 89


def test_personal_correct_first_try():
    game = EarTrainingGame(rng=random.Random(2))
    result = game.guess(7, game.answer())
    assert result.outcome is Outcome.CORRECT
    assert game.scores == {7: 1.0}
    assert game.score_report({7: "alice"}) == "alice: 1.0\n"


def test_personal_one_error_then_correct():
    game = EarTrainingGame(rng=random.Random(3))
    first = game.guess(7, _wrong(game))
    assert first.outcome is Outcome.WRONG
    assert first.error_count == 1
    game.guess(7, game.answer())
    assert game.scores == {7: 0.5}


def test_personal_exhausted_after_three_errors():
    game = EarTrainingGame(rng=random.Random(4))
    outcomes = [game.guess(7, _wrong(game)).outcome for _ in range(3)]
    assert outcomes[-1] is Outcome.EXHAUSTED
    assert game.scores == {}
    assert game.round == 2
    assert game.error_count == 0


def test_team_allows_ten_errors_and_scores_nothing_on_failure():
    game = EarTrainingGame(team=True, rng=random.Random(5))
    results = [game.guess(1, _wrong(game)) for _ in range(10)]
    assert all(r.outcome is Outcome.WRONG for r in results[:9])
    assert results[9].outcome is Outcome.EXHAUSTED
    assert game.scores == {}


def test_game_finishes_after_five_rounds():
    game = EarTrainingGame(rng=random.Random(6))
    for _ in range(5):
        assert not game.finished()
        game.guess(1, game.answer())
    assert game.finished()
    assert game.scores == {1: 5.0}
    with pytest.raises(RuntimeError):
        game.guess(1, "C")