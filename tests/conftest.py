"""
Pytest configuration and fixtures for torlife tests.
"""

from __future__ import annotations

import curses
import os

import numpy as np
import pytest

import torlife
from torlife import GridState, TerminalView
from torlife_bench import FakeWindow, HeadlessTerminal

GLIDER = [(0, 1), (1, 2), (2, 0), (2, 1), (2, 2)]


def make_grid(width: int, height: int, live: list[tuple[int, int]] = ()) -> GridState:
    """Board with only the given (row, col) cells alive."""
    cells = np.zeros((height, width), dtype=np.int8)
    for r, c in live:
        cells[r, c] = 1
    return GridState.from_cells(width, height, cells)


def live_cells(grid: GridState) -> set[tuple[int, int]]:
    ys, xs = np.nonzero(grid.rows())
    return set(zip(ys.tolist(), xs.tolist()))


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator for reproducible random boards."""
    return np.random.default_rng(12345)


@pytest.fixture
def random_grid(rng: np.random.Generator) -> GridState:
    return GridState(9, 7, rng=rng)


@pytest.fixture
def terminal() -> HeadlessTerminal:
    return HeadlessTerminal(lines=30, cols=100)


@pytest.fixture
def view(random_grid: GridState, terminal: HeadlessTerminal) -> TerminalView:
    return TerminalView(random_grid, terminal, delay=0.0)


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace time.sleep so the loop does not actually wait."""
    calls: list[float] = []
    monkeypatch.setattr(torlife.time, "sleep", calls.append)
    return calls


@pytest.fixture
def fake_curses(monkeypatch: pytest.MonkeyPatch) -> list[tuple]:
    """Stub out the curses calls TerminalHandle makes; returns the call log."""
    calls: list[tuple] = []

    def record(name: str, result: object = None):
        def _call(*args: object) -> object:
            calls.append((name, *args))
            return result
        return _call

    def initscr() -> FakeWindow:
        calls.append(("initscr",))
        return FakeWindow(24, 80)

    monkeypatch.setattr(curses, "initscr", initscr)
    monkeypatch.setattr(curses, "color_pair", lambda n: n << 8)
    for name in ("start_color", "init_pair", "noecho", "echo", "cbreak", "nocbreak", "raw",
                 "curs_set", "endwin", "putp", "resize_term"):
        monkeypatch.setattr(curses, name, record(name))
    monkeypatch.setattr(
        torlife.shutil, "get_terminal_size", lambda: os.terminal_size((120, 50))
    )
    return calls
