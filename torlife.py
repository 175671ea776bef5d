#!/usr/bin/env python3
"""
  T O R L I F E
  Conway's Game of Life on a fixed toroidal grid, drawn in the terminal.

  A random board advances one generation per second. Living cells are
  magenta blocks on a black field. The edges wrap: a glider leaving the
  bottom of the board comes back at the top.

  There are no controls. Ctrl-C, SIGTERM or SIGHUP stop the loop at the
  next frame boundary and hand the terminal back the way it was found.

  Nothing is written anywhere but the terminal unless main() is given a
  log path for per-generation stats.
"""

from __future__ import annotations

import curses
import shutil
import signal
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import IO, ClassVar, Iterator, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.ndimage import convolve

# ── Cells ───────────────────────────────────────────────────────────────
DEAD: int = 0
ALIVE: int = 1

DEFAULT_WIDTH: int = 40
DEFAULT_HEIGHT: int = 80

# ── Convolution kernel (reused every tick) ────────────────────────────
NEIGHBOR_KERNEL: NDArray = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.int16)

# ── Display ─────────────────────────────────────────────────────────────
BLOCK = "\u2588"  # █  full block
FRAME_DELAY: float = 1.0   # seconds between generations
VIEW_MARGIN: int = 3       # extra lines/columns around the board

ALIVE_COLOR: int = curses.COLOR_MAGENTA
BACKGROUND_COLOR: int = curses.COLOR_BLACK
ALIVE_PAIR: int = 1
DEAD_PAIR: int = 2


# ═══════════════════════════════════════════════════════════════════════
#  Errors
# ═══════════════════════════════════════════════════════════════════════

class TerminalError(Exception):
    """A terminal operation failed. Never retried."""


class TerminalInitError(TerminalError):
    """Entering or leaving full-screen mode failed."""


class ResizeError(TerminalError):
    """The viewport could not be resized."""


class RenderError(TerminalError):
    """Writing a frame to the terminal failed."""


# ═══════════════════════════════════════════════════════════════════════
#  Stats logger
# ═══════════════════════════════════════════════════════════════════════

class StatsLogger:
    """Writes per-generation telemetry to CSV."""

    HEADER: ClassVar[str] = "gen,time_s,population,births,deaths,event\n"

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fh: IO[str] | None = None
        self._t0: float = time.monotonic()

    def open(self) -> bool:
        """Start a fresh CSV. False when the file cannot be written."""
        try:
            self._fh = self._path.open("w", encoding="utf-8")
            self._fh.write(self.HEADER)
        except OSError:
            self.close()
            return False
        self._t0 = time.monotonic()
        return True

    @property
    def active(self) -> bool:
        return self._fh is not None

    def log(
        self,
        gen: int,
        pop: int,
        births: int,
        deaths: int,
        event: str = "",
    ) -> None:
        if self._fh is None:
            return
        t = time.monotonic() - self._t0
        try:
            self._fh.write(f"{gen},{t:.1f},{pop},{births},{deaths},{event}\n")
            # Flush on events or periodically
            if event or gen % 50 == 0:
                self._fh.flush()
        except OSError:
            self.close()

    def close(self) -> None:
        fh, self._fh = self._fh, None
        if fh is None:
            return
        try:
            fh.close()
        except OSError:
            pass  # nothing left to write to


# ═══════════════════════════════════════════════════════════════════════
#  The board
# ═══════════════════════════════════════════════════════════════════════

def _check_dims(width: int, height: int) -> None:
    for name, value in (("width", width), ("height", height)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
            raise ValueError(f"{name} must be a positive integer, got {value!r}")


class GridState:
    """
    One generation of a width x height toroidal Life board.

    Cells live in a flat int8 array indexed by ``row * width + col``.
    ``tick()`` builds the next generation into a fresh array and swaps it
    in, so every neighbour count reads the same prior generation.
    """

    def __init__(
        self,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        rng: np.random.Generator | None = None,
        cells: ArrayLike | None = None,
    ) -> None:
        _check_dims(width, height)
        self.width: int = int(width)
        self.height: int = int(height)

        n = self.width * self.height
        if cells is None:
            noise = rng.random(n) if rng is not None else np.random.random(n)
            self.cells: NDArray[np.int8] = (noise > 0.5).astype(np.int8)
        else:
            flat = np.array(cells, dtype=np.int8).ravel()
            if flat.size != n:
                raise ValueError(
                    f"expected {n} cells for a {width}x{height} board, got {flat.size}"
                )
            if not np.isin(flat, (DEAD, ALIVE)).all():
                raise ValueError("cells must be 0 (dead) or 1 (alive)")
            self.cells = flat

        self.generation: int = 0
        self.births: int = 0
        self.deaths: int = 0

    @classmethod
    def from_cells(cls, width: int, height: int, cells: ArrayLike) -> GridState:
        """Build a board from explicit 0/1 values (flat or height x width)."""
        return cls(width, height, cells=cells)

    # ── Access ──────────────────────────────────────────────────────

    def index(self, row: int, col: int) -> int:
        return row * self.width + col

    def cell(self, row: int, col: int) -> int:
        return int(self.cells[self.index(row, col)])

    def rows(self) -> NDArray[np.int8]:
        """Read-only height x width view of the board."""
        view = self.cells.reshape(self.height, self.width)
        view.flags.writeable = False
        return view

    def population(self) -> int:
        return int(self.cells.sum())

    # ── Neighbours ──────────────────────────────────────────────────

    def live_neighbor_count(self, row: int, col: int) -> int:
        """Live cells among the 8 wrapped neighbours of (row, col).

        Offsets are H-1, 0, 1 and W-1, 0, 1 taken mod the board size; only the
        literal (0, 0) pair is skipped, so on a strip one cell high (or wide) a
        cell sees itself through just one of the wrapped offsets.
        """
        count = 0
        for dr in (self.height - 1, 0, 1):
            for dc in (self.width - 1, 0, 1):
                if dr == 0 and dc == 0:
                    continue
                r = (row + dr) % self.height
                c = (col + dc) % self.width
                count += int(self.cells[self.index(r, c)])
        return count

    def neighbor_counts(self) -> NDArray[np.int16]:
        """Neighbour counts for the whole board (height x width), torus-wrapped."""
        if self.width < 2 or self.height < 2:
            # The convolution would see a 1-wide strip through both wrapped sides
            return np.array(
                [[self.live_neighbor_count(r, c) for c in range(self.width)]
                 for r in range(self.height)],
                dtype=np.int16,
            )
        board = self.cells.reshape(self.height, self.width).astype(np.int16)
        return convolve(board, NEIGHBOR_KERNEL, mode="wrap")

    # ── Simulation ──────────────────────────────────────────────────

    def tick(self) -> None:
        """Advance one generation."""
        board = self.cells.reshape(self.height, self.width)
        n = self.neighbor_counts()
        alive = board == ALIVE

        nxt = np.where(
            alive,
            # <2 underpopulation, 2-3 stasis, >3 overpopulation
            np.where(n < 2, DEAD, np.where(n <= 3, ALIVE, DEAD)),
            # exactly 3 reproduces, anything else stays as it was
            np.where(n == 3, ALIVE, board),
        ).astype(np.int8)

        self.births = int((~alive & (nxt == ALIVE)).sum())
        self.deaths = int((alive & (nxt == DEAD)).sum())
        self.cells = nxt.ravel()
        self.generation += 1

    def event(self) -> str:
        """Name what the last tick did, if anything notable."""
        if self.generation == 0:
            return ""
        if self.population() == 0:
            return "extinct" if self.deaths else ""
        if self.births == 0 and self.deaths == 0:
            return "still"
        return ""


# ═══════════════════════════════════════════════════════════════════════
#  Terminal
# ═══════════════════════════════════════════════════════════════════════

class TerminalHandle:
    """
    The attached terminal as an explicit resource.

    ``session()`` brackets one frame: full-screen cbreak mode on entry, the
    original size and modes restored on exit, whichever way the block ends.
    curses is initialised lazily on the first session; between sessions the
    terminal is back in normal mode.
    """

    def __init__(self) -> None:
        size = shutil.get_terminal_size()
        self.original_size: tuple[int, int] = (size.lines, size.columns)
        self.window: curses.window | None = None
        self.alive_attr: int = 0
        self.dead_attr: int = 0

    @contextmanager
    def session(self, lines: int, cols: int) -> Iterator[TerminalHandle]:
        try:
            self.prepare_ui(lines, cols)
            yield self
        finally:
            self.reset_ui()

    def prepare_ui(self, lines: int, cols: int) -> None:
        try:
            if self.window is None:
                self.window = curses.initscr()
                curses.start_color()
                curses.init_pair(ALIVE_PAIR, ALIVE_COLOR, BACKGROUND_COLOR)
                curses.init_pair(DEAD_PAIR, BACKGROUND_COLOR, BACKGROUND_COLOR)
                self.alive_attr = curses.color_pair(ALIVE_PAIR)
                self.dead_attr = curses.color_pair(DEAD_PAIR)
            else:
                # Back into program mode after the last endwin()
                self.window.refresh()
            # cbreak, not raw: keystrokes are unbuffered but ^C still signals
            curses.noecho()
            curses.cbreak()
        except curses.error as exc:
            raise TerminalInitError(f"could not enter full-screen mode: {exc}") from exc

        self._resize(lines, cols)

        try:
            self.window.clear()
            self.window.bkgd(" ", self.dead_attr)
            curses.curs_set(0)
        except curses.error as exc:
            raise TerminalInitError(f"could not prepare screen: {exc}") from exc

    def reset_ui(self) -> None:
        """Original size and colours, then cursor, input modes and endwin().

        The mode steps always run. The first failure is the one raised.
        """
        if self.window is None:
            return
        try:
            self._resize(*self.original_size)
            try:
                self.window.bkgd(" ", curses.A_NORMAL)
                self.window.clear()
                self.window.refresh()
            except curses.error as exc:
                raise TerminalInitError(f"could not restore screen: {exc}") from exc
        except TerminalError:
            self._leave_program_mode(raise_errors=False)
            raise
        self._leave_program_mode()

    def _leave_program_mode(self, raise_errors: bool = True) -> None:
        failed: curses.error | None = None
        for restore in (lambda: curses.curs_set(1), curses.nocbreak, curses.echo, curses.endwin):
            try:
                restore()
            except curses.error as exc:
                failed = failed or exc
        if failed is not None and raise_errors:
            raise TerminalInitError(f"could not restore terminal: {failed}") from failed

    def _resize(self, lines: int, cols: int) -> None:
        try:
            # xterm window-manipulation request, then tell curses about it
            curses.putp(f"\x1b[8;{lines};{cols}t".encode())
            curses.resize_term(lines, cols)
        except curses.error as exc:
            raise ResizeError(f"could not resize terminal to {lines}x{cols}: {exc}") from exc


# ═══════════════════════════════════════════════════════════════════════
#  View + main loop
# ═══════════════════════════════════════════════════════════════════════

class TerminalView:
    """Drives prepare → render → tick → sleep → restore, once per generation."""

    def __init__(
        self,
        grid: GridState,
        terminal: TerminalHandle,
        delay: float = FRAME_DELAY,
        margin: int = VIEW_MARGIN,
        logger: StatsLogger | None = None,
    ) -> None:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay!r}")
        # curses refuses to write the bottom-right cell, so keep the board off it
        if margin < 1:
            raise ValueError(f"margin must be >= 1, got {margin!r}")
        self.grid = grid
        self.terminal = terminal
        self.delay = delay
        self.margin = margin
        self.logger = logger

    @property
    def viewport(self) -> tuple[int, int]:
        """(lines, cols) for a frame. Board rows run across the screen."""
        return self.grid.width + self.margin, self.grid.height + self.margin

    def render(self) -> None:
        """Queue one block per cell, then flush once."""
        win = self.terminal.window
        if win is None:
            raise RenderError("no active terminal session")

        alive_attr = self.terminal.alive_attr
        dead_attr = self.terminal.dead_attr
        board = self.grid.rows().tolist()
        _addstr = win.addstr

        try:
            win.bkgdset(" ", dead_attr)
            for row, values in enumerate(board):
                for col, value in enumerate(values):
                    # Screen x is the board row, screen y the board column
                    _addstr(col, row, BLOCK, alive_attr if value else dead_attr)
            win.refresh()
        except curses.error as exc:
            raise RenderError(f"frame {self.grid.generation} failed: {exc}") from exc

    def step(self) -> None:
        """One frame of the cycle."""
        with self.terminal.session(*self.viewport):
            self.render()
            self.grid.tick()
            if self.logger is not None:
                self.logger.log(
                    gen=self.grid.generation,
                    pop=self.grid.population(),
                    births=self.grid.births,
                    deaths=self.grid.deaths,
                    event=self.grid.event(),
                )
            time.sleep(self.delay)

    def run(self, stop: threading.Event | None = None) -> None:
        """Cycle until ``stop`` is set; forever when there is none."""
        while stop is None or not stop.is_set():
            self.step()


def install_stop_handlers(
    stop: threading.Event,
    signals: Sequence[signal.Signals] = (signal.SIGTERM, signal.SIGHUP),
) -> None:
    """Turn termination signals into a stop at the next frame boundary."""

    def _request_stop(signum: int, frame: object) -> None:
        stop.set()

    for sig in signals:
        signal.signal(sig, _request_stop)


def main(log_path: Path | None = None) -> None:
    """Run until interrupted. Stats go to ``log_path`` only when one is given."""
    stop = threading.Event()
    install_stop_handlers(stop)

    logger: StatsLogger | None = None
    if log_path is not None:
        logger = StatsLogger(log_path)
        logger.open()

    view = TerminalView(
        GridState(DEFAULT_WIDTH, DEFAULT_HEIGHT),
        TerminalHandle(),
        logger=logger,
    )
    try:
        view.run(stop)
    except KeyboardInterrupt:
        pass
    finally:
        if logger is not None:
            logger.close()


if __name__ == "__main__":
    main()
