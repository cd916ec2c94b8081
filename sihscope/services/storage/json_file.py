"""Durable problem store backed by orjson-encoded files.

Layout under ``data_dir``::

    problems/<year>.json   list of problem records for one edition year
    sessions.json          list of scraping sessions

Session changes are written immediately.  Problem changes are buffered
per year and written by :meth:`JsonFileProblemStore.flush`, once per
batch, on a worker thread.  Every write goes through a temporary file
and ``Path.replace`` so a crash never leaves a half-written document.
Files are read once at construction time.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import orjson
import structlog
from pydantic import ValidationError

from sihscope.models.problem import ProblemStatement
from sihscope.models.session import ScrapingSession
from sihscope.services.storage.memory import InMemoryProblemStore

logger = structlog.get_logger(__name__)

_SESSIONS_FILE = "sessions.json"
_PROBLEMS_DIR = "problems"


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    tmp_path.replace(path)


def _read_json(path: Path) -> list[dict[str, Any]]:
    try:
        data = orjson.loads(path.read_bytes())
    except (orjson.JSONDecodeError, OSError) as exc:
        logger.warning("store.file_unreadable", path=str(path), error=str(exc))
        return []
    if not isinstance(data, list):
        logger.warning("store.file_unexpected_shape", path=str(path))
        return []
    return data


class JsonFileProblemStore(InMemoryProblemStore):
    """In-memory store that mirrors every change to JSON files.

    Parameters
    ----------
    data_dir:
        Directory holding ``sessions.json`` and ``problems/<year>.json``.
        Created on first write if missing.
    """

    def __init__(self, data_dir: str | Path) -> None:
        super().__init__()
        self._data_dir = Path(data_dir)
        self._dirty_years: set[int] = set()
        self._load()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _year_path(self, year: int) -> Path:
        return self._data_dir / _PROBLEMS_DIR / f"{year}.json"

    # -- Loading ---------------------------------------------------------------

    def _load(self) -> None:
        sessions_path = self._data_dir / _SESSIONS_FILE
        if sessions_path.exists():
            for raw in _read_json(sessions_path):
                try:
                    session = ScrapingSession.model_validate(raw)
                except ValidationError:
                    logger.warning("store.session_invalid", path=str(sessions_path), exc_info=True)
                    continue
                self._sessions[session.year] = session

        problems_dir = self._data_dir / _PROBLEMS_DIR
        if problems_dir.is_dir():
            for year_file in sorted(problems_dir.glob("*.json")):
                for raw in _read_json(year_file):
                    try:
                        problem = ProblemStatement.model_validate(raw)
                    except ValidationError:
                        logger.warning("store.problem_invalid", path=str(year_file), exc_info=True)
                        continue
                    self._problems[problem.problem_id] = problem
                    self._natural_keys[problem.natural_key] = problem.problem_id

        logger.info(
            "store.loaded",
            data_dir=str(self._data_dir),
            problems=len(self._problems),
            sessions=len(self._sessions),
        )

    # -- Persistence hooks -----------------------------------------------------

    def _problems_changed(self, year: int) -> None:
        self._dirty_years.add(year)

    async def flush(self) -> None:
        """Rewrite the file of every year changed since the last flush.

        A year stays pending if its write fails, so the next flush
        retries it.
        """
        async with self._lock:
            for year in sorted(self._dirty_years):
                records = sorted(
                    (p for p in self._problems.values() if p.year == year),
                    key=lambda p: p.problem_id,
                )
                payload = [p.model_dump(mode="json") for p in records]
                await asyncio.to_thread(_write_json, self._year_path(year), payload)
                self._dirty_years.discard(year)
                logger.debug("store.year_flushed", year=year, records=len(payload))

    def _sessions_changed(self) -> None:
        sessions = [self._sessions[year] for year in sorted(self._sessions, reverse=True)]
        _write_json(
            self._data_dir / _SESSIONS_FILE,
            [s.model_dump(mode="json") for s in sessions],
        )
