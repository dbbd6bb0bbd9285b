# botplugins

Building blocks for a group-chat bot that speaks CQ codes. The modules parse
commands, keep state in SQLite, talk to web services through `requests`, read
HTML with `lxml` and write MIDI through `mido`. Each piece can be used and
tested on its own.

Install with `pip install .`; the test extra (`pip install .[test]`) adds
`pytest` and `responses`.

## What is inside

| Module | Purpose |
| --- | --- |
| `botplugins.timer` | `Timer` reminders with month/day/week/hour/minute packed into one integer; `filled_timer` builds one from the groups of a Chinese date phrase, `filled_cron_timer` from a cron string; `chinese_num_to_int`, `chinese_char_to_int`. |
| `botplugins.schedule` | `Clock` keeps timers in memory and in SQLite and fires them from `run_pending`; `next_wake_time`, `should_fire`, `first_weekday`, and a five-field cron parser `parse_cron` returning a `CronSchedule`. |
| `botplugins.manager` | Group management helpers: `ban_minutes`, `unescape_cq`, `set_verify_flag`, `set_gist_flag`, `pick_lucky`, `arithmetic_challenge`, `check_answer`, `cron_reminder_args`. |
| `botplugins.manager_db` | `ManagerDB` for welcome and farewell templates and gist-verified members; `welcome_to_cq`, `gist_url`, `check_new_user`, `parse_join_answer`. |
| `botplugins.github` | Repository search (`search`), a text card for the top hit (`format_repo`) and its preview image (`preview_image_url`). |
| `botplugins.imagefinder` | Keyword illustration search (`search`) and caption formatting (`format_illust`, `print_tags`, `clean_description`). |
| `botplugins.inject` | `unescape_cq_text` for sending raw CQ code. |
| `botplugins.hyaku` | The Ogura Hyakunin Isshu: `load_poems` from its CSV file, `Poem`, `image_urls`. |
| `botplugins.lolicon` | `ImageQueue`, a bounded prefetch queue of random image references. |
| `botplugins.hearthstone` | Card search (`search_cards`, `card_image_url`) and deck-code images (`deck_image`). |
| `botplugins.jandan` | `PictureStore` of picture links keyed by CRC-64 (`picture_id`), and `update`, which walks the listing pages and stops at the first known picture. |
| `botplugins.juejuezi` | Word splitting (`split_words`), payload building and the request to the "绝绝子" text generator. |
| `botplugins.midi` | A tiny note language to MIDI and back, WAV rendering through `timidity`, and `EarTrainingGame`. |

Network helpers raise their module's error class (`GitHubError`,
`ImageFinderError`, `LoliconError`, `HearthstoneError`, `JuejueziError`,
`GistError`) when a request fails or the reply is not usable.

## Reminders

```python
from botplugins.timer import filled_timer, filled_cron_timer

# groups: whole match, month, day-or-week, hour, minute, "用<url>" part, alert
t = filled_timer(["", "12", "二十五日", "8", "30", "", "test"], 0, 1001, False)
print(t.month(), t.day(), t.hour(), t.minute(), t.enabled())
print(t.info(), t.timer_id())

c = filled_cron_timer("0 9 * * 1", "weekly meeting", "", 0, 1001)
```

A value out of range gives back a disabled timer with the reason in its
`alert` field. `Timer.message_segments()` gives the message to send: an
@all segment, the alert text and the image when the timer has a url.

Keep and fire them with a clock. The sender is called with each `Timer` that
comes due:

```python
from datetime import datetime
from botplugins.schedule import Clock

sent = []
with Clock("timers.db", sent.append) as clock:
    clock.register_timer(t, True)
    clock.register_timer(c, True)
    print(clock.list_timers(1001))
    clock.run_pending(datetime.now())
```

`register_timer` returns `False` for a disabled timer or a cron spec that
cannot be parsed (the parse error is left in `alert`). `cancel_timer(key)`
removes a timer from memory and the database. Timers stored in the database
are loaded again when a `Clock` is opened on it.

## Notes and MIDI

```python
from botplugins.midi import parse_note, note_name, make_midi, midi_to_text

parse_note("C#6")           # 73
note_name(61)               # "Db"
make_midi("CCGGAAGR FFEEDDCR", "tune.mid", 40)
with open("tune.mid", "rb") as f:
    print(midi_to_text(f.read(), 0))
```

Letters `A`–`G` are notes, `b` and `#` flatten and sharpen, digits set the
octave (5 when absent), `R` is a rest and `<n` makes the note or rest last a
quarter note times 2ⁿ. An unknown character raises `ValueError`. An existing
MIDI file is not overwritten. `render_wav` and `str_to_music` run the
`timidity` program, which must be on your `PATH`. `validate_timbre` raises
outside 0–127; `timbre_key` gives the group id, or minus the user id in a
private chat.

`EarTrainingGame(team=False)` plays five rounds: `answer()` is the note to
play, `guess(user_id, text)` returns a `Guess` whose `outcome` is `CORRECT`,
`WRONG` or `EXHAUSTED`, and `score_report(names)` lists the scores once
`finished()` is true.

## Group management

```python
from botplugins.manager import ban_minutes, unescape_cq
from botplugins.manager_db import ManagerDB, welcome_to_cq

ban_minutes(2, "小时")      # 120; capped at 43199 minutes
unescape_cq("&#91;CQ:face,id=1&#93;")

with ManagerDB("config.db") as db:
    db.set_welcome(1001, "欢迎 {at} 加入 {groupname}!")
    print(welcome_to_cq(db.welcome(1001), 42, "小明", 1001, "测试群"))
```

`check_new_user` accepts a join request when the member's gist, named after
the MD5 of the group number, holds a unix timestamp within ten minutes; the
fetch function and the current time can be passed in.

## What the package does not do

It does not connect to a chat platform, listen for messages or match
commands, and it sends nothing itself: the caller delivers the text and
segments the functions return. `Clock` runs no background thread; call
`run_pending` on a schedule of your own.