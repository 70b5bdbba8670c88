import re
from typing import AsyncIterator, Dict, List, Optional
from loguru import logger
from pydantic import BaseModel, Field
from google_books import ChunkFetchError, GoogleBooksClient
from models import SearchRecord, StatsSummary

# --- CONFIGURATION ---
STATS_CAP = 200  # ceiling on records scanned per search
CHUNK_SIZE = 40  # Google Books refuses maxResults > 40

YEAR_PATTERN = re.compile(r"^(\d{4})")


def parse_year(date_str: Optional[str]) -> Optional[int]:
    """'2020-05-01' -> 2020, '1987' -> 1987, 'circa 1990' -> None."""
    if not date_str: return None
    match = YEAR_PATTERN.match(date_str)
    return int(match.group(1)) if match else None


class ChunkResult(BaseModel):
    start_index: int
    records: List[SearchRecord] = Field(default_factory=list)
    ok: bool = True

    @classmethod
    def failed(cls, start_index: int) -> "ChunkResult":
        return cls(start_index=start_index, ok=False)


class AggregateStats:
    """
    Running accumulator for one search request.

    The leader is tracked while folding so that a tie on the final count goes
    to whichever author reached it first.
    """

    def __init__(self):
        self.author_counts: Dict[str, int] = {}
        self.earliest_year: Optional[int] = None
        self.latest_year: Optional[int] = None
        self.scanned = 0
        self.chunks_requested = 0
        self.chunks_failed = 0
        self._leader: Optional[str] = None
        self._leader_count = 0

    def add_record(self, record: SearchRecord) -> None:
        info = record.volumeInfo
        for author in info.authors:
            count = self.author_counts.get(author, 0) + 1
            self.author_counts[author] = count
            if count > self._leader_count:
                self._leader, self._leader_count = author, count

        year = parse_year(info.publishedDate)
        if year is None: return
        self.earliest_year = year if self.earliest_year is None else min(self.earliest_year, year)
        self.latest_year = year if self.latest_year is None else max(self.latest_year, year)

    def add_chunk(self, chunk: ChunkResult) -> None:
        self.chunks_requested += 1
        if not chunk.ok:
            self.chunks_failed += 1
            return
        for record in chunk.records:
            self.add_record(record)
        self.scanned += len(chunk.records)

    @property
    def most_common_author(self) -> Optional[str]:
        return self._leader

    def summary(self) -> StatsSummary:
        return StatsSummary(
            mostCommonAuthor=self.most_common_author,
            earliestYear=self.earliest_year,
            latestYear=self.latest_year,
            recordsScanned=self.scanned,
            chunksRequested=self.chunks_requested,
            chunksFailed=self.chunks_failed,
        )


async def iter_chunks(
    client: GoogleBooksClient,
    query: str,
    to_scan: int,
    chunk_size: int = CHUNK_SIZE,
) -> AsyncIterator[ChunkResult]:
    """
    Pulls one batch at a time at offsets 0, chunk_size, 2*chunk_size ... below to_scan.

    A failed fetch is yielded as a failed ChunkResult and the walk carries on at the
    next offset. A successful batch ends the walk when the scanned total reaches
    to_scan, when it is empty, or when it is shorter than chunk_size.
    """
    scanned = 0
    for start_index in range(0, to_scan, chunk_size):
        try:
            page = await client.fetch_chunk(query, chunk_size, start_index)
        except ChunkFetchError as e:
            logger.warning(f"Stats chunk at startIndex={e.start_index} skipped for q={query!r}: {e.reason}")
            yield ChunkResult.failed(start_index)
            continue

        batch = page.items
        # Upstream may deliver more than its reported total; never fold past to_scan
        records = batch[:to_scan - scanned]
        yield ChunkResult(start_index=start_index, records=records)

        scanned += len(records)
        if scanned >= to_scan: return
        if not batch: return
        if len(batch) < chunk_size: return


async def compute_stats(
    client: GoogleBooksClient,
    query: str,
    total_items: int,
    cap: int = STATS_CAP,
    chunk_size: int = CHUNK_SIZE,
) -> StatsSummary:
    to_scan = max(0, min(total_items, cap))
    stats = AggregateStats()
    async for chunk in iter_chunks(client, query, to_scan, chunk_size):
        stats.add_chunk(chunk)

    summary = stats.summary()
    logger.info(
        f"Stats for q={query!r}: scanned {summary.recordsScanned}/{to_scan} records "
        f"in {summary.chunksRequested} chunks ({summary.chunksFailed} failed)"
    )
    return summary
