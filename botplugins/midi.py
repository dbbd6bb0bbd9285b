"""Simple note-string music: MIDI writing and reading, and an ear-training game."""

from __future__ import annotations

import enum
import io
import math
import os
import random
import re
import subprocess
from dataclasses import dataclass, field
from os import PathLike
from typing import Iterator, Mapping

import mido

NOTE_MAP = {
    "C": 60,
    "Db": 61,
    "D": 62,
    "Eb": 63,
    "E": 64,
    "F": 65,
    "Gb": 66,
    "G": 67,
    "Ab": 68,
    "A": 69,
    "Bb": 70,
    "B": 71,
}
TICKS_4TH = 960
TEMPO_BPM = 72
VELOCITY = 120
DEFAULT_TIMBRE = 40
INSTRUMENT = "Violin"

_MASK8 = 0xFF
_MASK32 = 0xFFFFFFFF
_DIGITS = "0123456789"
_INT = re.compile(r"[+-]?[0-9]+")


def note_octave(base: int, octave: int) -> int:
    """MIDI note of pitch class base in octave; octave 0 means base itself.

    Octaves above 10 are clamped, and a note above 127 drops one octave.
    """
    base &= _MASK8
    octave &= _MASK8
    if octave > 10:
        octave = 10
    if octave == 0:
        return base
    res = (base + 12 * octave) & _MASK8
    if res > 127:
        res -= 12
    return res


def note_name(note: int) -> str:
    """Name of the pitch class of note, flats preferred (61 is "Db")."""
    for name, value in NOTE_MAP.items():
        if value % 12 == note % 12:
            return name
    return ""


def parse_note(note: str) -> int:
    """MIDI note of a single note such as "C#6"; octave 5 when none is given."""
    base = 0
    level = 0
    for c in note.replace(" ", ""):
        if "A" <= c <= "G":
            base = NOTE_MAP[c] % 12
        elif c == "b":
            base = (base - 1) & _MASK8
        elif c == "#":
            base = (base + 1) & _MASK8
        elif c in _DIGITS:
            level = (level * 10 + int(c)) & _MASK8
    if level == 0:
        level = 5
    return note_octave(base, level)


def _atoi(text: str) -> int:
    return int(text) if _INT.fullmatch(text) else 0


@dataclass(frozen=True)
class _Token:
    rest: bool
    base: int
    level: int
    length: int


def _tokens(text: str) -> Iterator[_Token]:
    k = text.replace(" ", "")
    n = len(k)
    i = 0
    while i < n:
        rest = False
        base = 0
        level = 0
        digits = ""
        while True:
            c = k[i]
            if c == "R":
                rest = True
                i += 1
            elif "A" <= c <= "G":
                base = NOTE_MAP[c] % 12
                i += 1
            elif c == "b":
                base = (base - 1) & _MASK8
                i += 1
            elif c == "#":
                base = (base + 1) & _MASK8
                i += 1
            elif c in _DIGITS:
                level = (level * 10 + int(c)) & _MASK8
                i += 1
            elif c == "<":
                i += 1
                while i < n and (k[i] == "-" or k[i] in _DIGITS):
                    digits += k[i]
                    i += 1
            else:
                raise ValueError(f"无法解析第{i}个位置的{c}字符")
            if i >= n or "A" <= k[i] <= "G" or k[i] == "R":
                break
        yield _Token(rest, base, level, _atoi(digits))


def _span(length: int) -> int:
    """Ticks of a note lasting 2**length quarter notes."""
    if length >= 0:
        return (TICKS_4TH * ((1 << length) & _MASK32)) & _MASK32
    divisor = (1 << -length) & _MASK32
    if divisor == 0:
        raise ValueError(f"note length {length} out of range")
    return TICKS_4TH // divisor


def make_midi(text: str, path: str | PathLike[str], timbre: int = DEFAULT_TIMBRE) -> None:
    """Write the note string as a MIDI file; an existing file is left as it is.

    Notes are letters A-G with optional b/# and octave digits, R is a rest,
    and "<n" makes the preceding note or rest last 2**n quarter notes.
    """
    if os.path.exists(path):
        return
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("time_signature", numerator=4, denominator=4, time=0))
    track.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(TEMPO_BPM), time=0))
    track.append(mido.MetaMessage("instrument_name", name=INSTRUMENT, time=0))
    track.append(mido.Message("program_change", channel=0, program=timbre & 0x7F, time=0))
    delay = 0
    for token in _tokens(text):
        if token.rest:
            delay = _span(token.length)
            continue
        level = token.level or 5
        key = note_octave(token.base, level) & 0x7F
        track.append(mido.Message("note_on", channel=0, note=key, velocity=VELOCITY, time=delay))
        track.append(
            mido.Message("note_off", channel=0, note=key, velocity=0, time=_span(token.length))
        )
        delay = 0
    track.append(mido.MetaMessage("end_of_track", time=0))
    midi = mido.MidiFile(type=1, ticks_per_beat=TICKS_4TH)
    midi.tracks.append(track)
    midi.save(str(path))


def _round_half_away(x: float) -> int:
    return math.floor(x + 0.5) if x >= 0 else -math.floor(-x + 0.5)


def _power(length: float) -> int | None:
    if length <= 0:
        return None
    return _round_half_away(math.log2(length))


def midi_to_text(data: bytes, track_no: int) -> str:
    """Note string of one track of a MIDI file; empty for a missing track."""
    midi = mido.MidiFile(file=io.BytesIO(data))
    if not 0 <= track_no < len(midi.tracks):
        return ""
    start = 0.0
    end = 0.0
    start_note = 0
    end_note = 0
    ticks = 0
    out = []
    for msg in midi.tracks[track_no]:
        ticks += msg.time
        if msg.is_meta:
            continue
        note_on = msg.type == "note_on"
        sounding = note_on and msg.velocity > 0
        if sounding:
            start = float(ticks)
            start_note = msg.note
        if msg.type == "note_off" or (note_on and msg.velocity == 0):
            end = float(ticks)
            end_note = msg.note
            if start_note == end_note:
                out.append(note_name(msg.note))
                level = msg.note // 12
                if level != 5:
                    out.append(str(level))
                pow_ = _power((end - start) / TICKS_4TH)
                if pow_ is not None and pow_ >= -4 and pow_ != 0:
                    out.append(f"<{pow_}")
                start_note = 0
                end_note = 0
        if sounding and start > end:
            pow_ = _power((start - end) / TICKS_4TH)
            if pow_ == 0:
                out.append("R")
            elif pow_ is not None and pow_ >= -4:
                out.append(f"R<{pow_}")
    return "".join(out)


def render_wav(midi_path: str | PathLike[str]) -> str:
    """Render the MIDI file to WAV with timidity and return the WAV path."""
    midi = str(midi_path)
    wav = midi.replace(".mid", ".wav")
    subprocess.run(
        ["timidity", os.path.abspath(midi), "-Ow", "-o", os.path.abspath(wav)],
        check=True,
        capture_output=True,
    )
    return wav


def str_to_music(
    text: str, midi_path: str | PathLike[str], timbre: int = DEFAULT_TIMBRE
) -> str:
    """Write text as MIDI at midi_path and render it; return the WAV path."""
    make_midi(text, midi_path, timbre)
    return render_wav(midi_path)


def validate_timbre(timbre: int) -> int:
    """Return timbre if it is a valid MIDI program (0 to 127)."""
    if timbre < 0 or timbre > 127:
        raise ValueError("音色应该在0~127之间")
    return timbre


def timbre_key(group_id: int, user_id: int) -> int:
    """Key under which a timbre is stored: the group, or minus the user in private."""
    return group_id if group_id != 0 else -user_id


class Outcome(enum.Enum):
    CORRECT = "correct"
    WRONG = "wrong"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class Guess:
    """Result of one guess: the outcome, the round's answer and errors so far."""

    outcome: Outcome
    answer: str
    error_count: int


@dataclass
class EarTrainingGame:
    """Five rounds of naming a played note, alone or as a team."""

    team: bool = False
    rng: random.Random = field(default_factory=random.Random)
    max_round: int = 6

    def __init__(self, team: bool = False, rng: random.Random | None = None) -> None:
        self.team = team
        self.rng = rng or random.Random()
        self.max_round = 6
        self.max_errors = 10 if team else 3
        self.round = 1
        self.error_count = 0
        self.scores: dict[int, float] = {}
        self._new_target()

    def _new_target(self) -> None:
        self.target = 55 + self.rng.randrange(34)
        self.error_count = 0

    def answer(self) -> str:
        """The current note, such as "C#6" written as "Db6"."""
        return note_name(self.target) + str(self.target // 12)

    def guess(self, user_id: int, text: str) -> Guess:
        """Judge a guess; a correct one or the last allowed error ends the round."""
        if self.finished():
            raise RuntimeError("game finished")
        answer = self.answer()
        n = parse_note(text)
        if n != self.target:
            self.error_count += 1
        if self.error_count != self.max_errors and n != self.target:
            return Guess(Outcome.WRONG, answer, self.error_count)
        outcome = Outcome.CORRECT if n == self.target else Outcome.EXHAUSTED
        errors = self.error_count
        if self.team:
            if errors != self.max_errors:
                self.scores[user_id] = self.scores.get(user_id, 0.0) + 1.0
        else:
            points = {0: 1.0, 1: 0.5, 2: 0.2}.get(errors)
            if points is not None:
                self.scores[user_id] = self.scores.get(user_id, 0.0) + points
        self.round += 1
        if self.round != self.max_round:
            self._new_target()
        return Guess(outcome, answer, errors)

    def finished(self) -> bool:
        return self.round == self.max_round

    def score_report(self, names: Mapping[int, str] | None = None) -> str:
        """One "name: score" line per player who scored."""
        names = names or {}
        return "".join(
            f"{names.get(uid, str(uid))}: {value:.1f}\n" for uid, value in self.scores.items()
        )