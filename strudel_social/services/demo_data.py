"""Built-in example patterns shown when the store is unconfigured, unreachable or empty."""

from __future__ import annotations

from strudel_social.models.pattern import PatternView

LISTING_CATEGORIES: tuple[str, ...] = ("All", "Drums", "Bass", "Synth", "Melodic", "Ambient", "Patterns", "Vocal")

_DEMO_ROWS: tuple[dict, ...] = (
    {
        "id": "demo-1",
        "name": "Basic Kick Pattern",
        "category": "Drums",
        "code": 'sound("bd bd ~ bd").cpm(120)',
        "author": "strudel",
        "tags": ["kick", "bass", "4/4"],
        "description": "Simple four-on-the-floor kick pattern",
    },
    {
        "id": "demo-2",
        "name": "Hi-Hat Groove",
        "category": "Drums",
        "code": 'sound("hh*8").fast(2)',
        "author": "strudel",
        "tags": ["hihat", "groove", "fast"],
        "description": "Fast hi-hat pattern for energy",
    },
    {
        "id": "demo-3",
        "name": "Synth Arpeggio",
        "category": "Synth",
        "code": 'note("<c3 eb3 g3 bb3>").s("sawtooth").lpf(1000)',
        "author": "community",
        "tags": ["synth", "arpeggio", "melodic"],
        "description": "Ascending synth arpeggio with filter",
    },
    {
        "id": "demo-4",
        "name": "Breakbeat Loop",
        "category": "Drums",
        "code": 'samples("github:tidalcycles/Dirt-Samples/master/breaks/breaks165.wav").speed("[1 1.1 0.9]*2")',
        "author": "community",
        "tags": ["breaks", "loop", "drum"],
        "description": "Classic breakbeat with speed variations",
    },
    {
        "id": "demo-5",
        "name": "Ambient Pad",
        "category": "Ambient",
        "code": 'note("c2 eb2 g2").s("sawtooth").slow(8).room(0.9).lpf(800)',
        "author": "strudel",
        "tags": ["pad", "ambient", "slow"],
        "description": "Lush ambient pad with reverb",
    },
    {
        "id": "demo-6",
        "name": "Snare Pattern",
        "category": "Drums",
        "code": 'sound("~ sd ~ sd")',
        "author": "strudel",
        "tags": ["snare", "backbeat"],
        "description": "Classic backbeat snare pattern",
    },
    {
        "id": "demo-7",
        "name": "Bass Line",
        "category": "Bass",
        "code": 'note("c2 c2 eb2 g2").s("sawtooth").lpf(300)',
        "author": "community",
        "tags": ["bass", "groove", "low"],
        "description": "Deep bass line with low-pass filter",
    },
    {
        "id": "demo-8",
        "name": "Euclidean Rhythm",
        "category": "Patterns",
        "code": 'sound("bd(3,8)").bank("RolandTR909")',
        "author": "community",
        "tags": ["euclidean", "rhythm", "generative"],
        "description": "3 hits distributed across 8 steps",
    },
    {
        "id": "demo-9",
        "name": "Chord Progression",
        "category": "Melodic",
        "code": 'note("<Cm7 Fm7 Gm7 Bb7>").voicing().s("piano")',
        "author": "strudel",
        "tags": ["chords", "progression", "jazz"],
        "description": "Jazz chord progression in C minor",
    },
    {
        "id": "demo-10",
        "name": "Clap Shuffle",
        "category": "Drums",
        "code": 'sound("~ ~ cp ~").degradeBy(0.3)',
        "author": "community",
        "tags": ["clap", "shuffle", "random"],
        "description": "Shuffled clap pattern with randomization",
    },
)

# Starter snippets offered by the upload form.
EXAMPLE_SNIPPETS: tuple[str, ...] = (
    'sound("bd sd ~ sd")',
    'note("c3 eb3 g3").s("sawtooth")',
    'stack(sound("bd*4"), sound("hh*8"))',
)


def demo_patterns() -> list[PatternView]:
    """A fresh copy of the demo dataset. Never composed with likes."""
    return [PatternView(**row) for row in _DEMO_ROWS]


def demo_seed_rows() -> list[dict]:
    """Demo rows as insertable dicts: no demo ids, no owner."""
    rows = []
    for row in _DEMO_ROWS:
        insert = {k: v for k, v in row.items() if k != "id"}
        insert["tags"] = list(insert["tags"])
        rows.append(insert)
    return rows
