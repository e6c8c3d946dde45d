import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlmodel import Session

from movie_collaborations.config import CollaborationSettings
from movie_collaborations.data_access.credit_source import CreditSource
from movie_collaborations.data_access.models.collaboration import PersonRelationship, utc_now
from movie_collaborations.domain.errors import PathNotFound, PathSearchTimeout
from movie_collaborations.domain.models.collaboration import PathConnection, PathResult, PathWithMovies

logger = logging.getLogger(__name__)

RELATIONSHIP_KEY = ["from_person_id", "to_person_id"]


class PathCache:
    """Memo of shortest paths keyed by (from, to), valid until their expiry."""

    def get(self, from_person_id: int, to_person_id: int) -> Optional[PathResult]:
        raise NotImplementedError

    def put(self, result: PathResult) -> None:
        raise NotImplementedError


class MemoryPathCache(PathCache):
    """In-process cache, safe to share between threads."""

    def __init__(self, ttl: timedelta, clock: Callable[[], datetime] = utc_now):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[Tuple[int, int], Tuple[PathResult, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, from_person_id: int, to_person_id: int) -> Optional[PathResult]:
        key = (from_person_id, to_person_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            result, expires_at = entry
            if expires_at <= self.clock():
                del self._entries[key]
                return None
        return result.model_copy(update={"cached": True})

    def put(self, result: PathResult) -> None:
        now = self.clock()
        with self._lock:
            # Expired keys that are never read again would otherwise stay forever
            expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
            self._entries[(result.from_person_id, result.to_person_id)] = (
                result.model_copy(update={"cached": False}),
                now + self.ttl,
            )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DatabasePathCache(PathCache):
    """Cache backed by the person_relationships table.

    Entries are written on the caller's session; the caller commits.
    """

    def __init__(self, session: Session, ttl: timedelta, clock: Callable[[], datetime] = utc_now):
        self.session = session
        self.ttl = ttl
        self.clock = clock

    def get(self, from_person_id: int, to_person_id: int) -> Optional[PathResult]:
        stmt = select(PersonRelationship).where(
            PersonRelationship.from_person_id == from_person_id,
            PersonRelationship.to_person_id == to_person_id,
            PersonRelationship.expires_at > self.clock(),
        )
        row = self.session.exec(stmt).scalars().first()
        if row is None:
            return None
        return PathResult(
            from_person_id=row.from_person_id,
            to_person_id=row.to_person_id,
            degree=row.degree,
            path=list(row.shortest_path),
            cached=True,
        )

    def put(self, result: PathResult) -> None:
        now = self.clock()
        values = {
            "from_person_id": result.from_person_id,
            "to_person_id": result.to_person_id,
            "degree": result.degree,
            "shortest_path": list(result.path),
            "calculated_at": now,
            "expires_at": now + self.ttl,
        }
        dialect = self.session.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            insert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = insert(PersonRelationship.__table__).values(values)
            # A fresh computation replaces whatever entry (expired or not) was there
            stmt = stmt.on_conflict_do_update(
                index_elements=RELATIONSHIP_KEY,
                set_={col: stmt.excluded[col] for col in values if col not in RELATIONSHIP_KEY},
            )
            self.session.exec(stmt)
            return

        existing = self.session.exec(select(PersonRelationship).where(
            PersonRelationship.from_person_id == result.from_person_id,
            PersonRelationship.to_person_id == result.to_person_id,
        )).scalars().first()
        if existing is None:
            self.session.add(PersonRelationship(**values))
        else:
            for key, value in values.items():
                setattr(existing, key, value)
            self.session.add(existing)
        self.session.flush()


class PathFinder:
    def __init__(self, credit_source: CreditSource, cache: Optional[PathCache] = None,
                 settings: CollaborationSettings = None, engine: Optional[Engine] = None):
        """Initialize the PathFinder over raw co-credit adjacency, with an optional result cache.

        With more than one search worker, ``engine`` gives every pooled lookup
        its own session.
        """
        self.credit_source = credit_source
        self.cache = cache
        self.settings = settings or CollaborationSettings()
        self.engine = engine

    def find_shortest_path(self, from_person_id: int, to_person_id: int,
                           max_depth: Optional[int] = None,
                           time_budget: Optional[float] = None) -> PathResult:
        """Shortest chain of shared films between two people.

        Raises PathNotFound when no chain exists within ``max_depth`` hops and
        PathSearchTimeout when ``time_budget`` seconds run out first.
        """
        max_depth = max_depth if max_depth is not None else self.settings.max_depth
        time_budget = time_budget if time_budget is not None else self.settings.path_time_budget

        if from_person_id == to_person_id:
            return PathResult(from_person_id=from_person_id, to_person_id=to_person_id, degree=0,
                              path=[from_person_id])

        if self.cache is not None:
            cached = self.cache.get(from_person_id, to_person_id)
            if cached is not None and cached.degree <= max_depth:
                logger.debug(f"Path cache hit for {from_person_id} -> {to_person_id}")
                return cached

        path = self._bfs(from_person_id, to_person_id, max_depth, time_budget)
        if path is None:
            logger.info(f"No path from {from_person_id} to {to_person_id} within {max_depth} degrees")
            raise PathNotFound(from_person_id, to_person_id, max_depth)

        result = PathResult(from_person_id=from_person_id, to_person_id=to_person_id,
                            degree=len(path) - 1, path=path)
        if self.cache is not None:
            self.cache.put(result)
            self.cache.put(PathResult(from_person_id=to_person_id, to_person_id=from_person_id,
                                      degree=result.degree, path=list(reversed(path))))
        logger.info(f"Found degree {result.degree} path from {from_person_id} to {to_person_id}")
        return result

    def find_path_with_movies(self, from_person_id: int, to_person_id: int,
                              max_depth: Optional[int] = None) -> PathWithMovies:
        """Shortest path plus one connecting movie for every hop."""
        result = self.find_shortest_path(from_person_id, to_person_id, max_depth=max_depth)
        connections = [
            PathConnection(
                person_a_id=a,
                movie=self.credit_source.find_connecting_movie(a, b),
                person_b_id=b,
            )
            for a, b in zip(result.path, result.path[1:])
        ]
        return PathWithMovies(degree=result.degree, path=result.path, connections=connections)

    def _bfs(self, start: int, target: int, max_depth: int, time_budget: Optional[float]) -> Optional[List[int]]:
        # A person is enqueued once, at the first (shallowest) depth it is reached
        deadline = time.monotonic() + time_budget if time_budget is not None else None

        def check_deadline():
            if deadline is not None and time.monotonic() > deadline:
                logger.warning(f"Path search {start} -> {target} ran out of its {time_budget}s budget")
                raise PathSearchTimeout(start, target, time_budget)

        parents: Dict[int, Optional[int]] = {start: None}
        frontier = [start]
        depth = 0

        while frontier and depth < max_depth:
            next_frontier = []
            for person_id, neighbours in self._expand(frontier, check_deadline):
                for neighbour in neighbours:
                    if neighbour in parents:
                        continue
                    parents[neighbour] = person_id
                    if neighbour == target:
                        return _walk_back(parents, target)
                    next_frontier.append(neighbour)
            frontier = next_frontier
            depth += 1
            logger.debug(f"BFS {start} -> {target}: depth {depth}, frontier {len(frontier)}")
        return None

    def _expand(self, frontier: List[int], check_deadline: Callable[[], None]) -> Iterator[Tuple[int, List[int]]]:
        """Yield (person, co-credited people) for every frontier node, in frontier order."""
        workers = self.settings.path_search_workers
        if workers > 1 and len(frontier) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(self._connected_people, p) for p in frontier]
                try:
                    for person_id, future in zip(frontier, futures):
                        check_deadline()
                        yield person_id, future.result()
                finally:
                    for future in futures:
                        future.cancel()
            return
        for person_id in frontier:
            check_deadline()
            yield person_id, self.credit_source.get_connected_people(person_id)

    def _connected_people(self, person_id: int) -> List[int]:
        # Sessions are not thread-safe; pool workers read through their own
        if self.engine is None:
            return self.credit_source.get_connected_people(person_id)
        with Session(self.engine) as session:
            return CreditSource(session).get_connected_people(person_id)


def _walk_back(parents: Dict[int, Optional[int]], target: int) -> List[int]:
    path = [target]
    while parents[path[-1]] is not None:
        path.append(parents[path[-1]])
    path.reverse()
    return path
