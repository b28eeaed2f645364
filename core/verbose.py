"""Verbose console output for pipeline runs.

Module-level singleton. Call configure() once at boot, then use
header/stage/step/detail from anywhere. Structured audit records go
through structlog; this module is only for a human watching a run.

Levels:
    0 (OFF)  : silent (default)
    1 (INFO) : header, stage, stage_end, source/user summaries
    2 (DEBUG): + step
    3 (TRACE): + detail (per page, per posting)
"""

from __future__ import annotations

from enum import IntEnum

_level: int = 0


class Level(IntEnum):
    """Verbosity levels."""

    OFF = 0
    INFO = 1
    DEBUG = 2
    TRACE = 3


def configure(level: int) -> None:
    """Set verbosity level. Called once at boot."""
    global _level
    _level = level


def header(text: str) -> None:
    """Run-level header."""
    if _level >= Level.INFO:
        print(f"\n═══ {text} ═══\n")


def stage(name: str, description: str) -> None:
    """Stage header with brief explanation."""
    if _level >= Level.INFO:
        print(f"── {name}: {description} ──")


def stage_end(name: str, items_out: int, errors: int, duration: float) -> None:
    if _level >= Level.INFO:
        print(
            f"── {name} done ({items_out} out, {errors} errors, {duration:.2f}s) ──\n"
        )


def source_summary(source: str, pages: int, postings: int, halted: str | None) -> None:
    """One line per source after collection."""
    if _level >= Level.INFO:
        suffix = f" | halted: {halted}" if halted else ""
        print(f"  {source:<20s} | {pages:>3d} pages | {postings:>5d} postings{suffix}")


def user_summary(email: str, algorithm: str, delivered: int, phase: str) -> None:
    """One line per user after a delivery decision."""
    if _level >= Level.INFO:
        print(f"  {email:<32s} | {phase:<8s} | {algorithm:<8s} | {delivered:>3d} jobs")


def step(text: str) -> None:
    """Indented sub-header within a stage."""
    if _level >= Level.DEBUG:
        print(f"  {text}")


def detail(text: str) -> None:
    """Further indented detail line."""
    if _level >= Level.TRACE:
        print(f"    {text}")
