import logging
from typing import Iterator, List, Sequence, Tuple
import pandas as pd

from movie_collaborations.config import CollaborationSettings, DIRECTOR_JOB
from movie_collaborations.data_access.credit_source import CreditSource, FACT_COLUMNS
from movie_collaborations.domain.models.collaboration import CollaborationType
from .classifier_service import classify, CAST, CREW

logger = logging.getLogger(__name__)

OBSERVATION_COLUMNS = [
    "person_a_id", "person_b_id", "movie_id", "collaboration_type",
    "year", "release_date", "rating", "revenue",
]


class PairExtractor:
    def __init__(self, credit_source: CreditSource, settings: CollaborationSettings = None):
        """Initialize the PairExtractor with a credit source and pruning settings."""
        self.credit_source = credit_source
        self.settings = settings or CollaborationSettings()

    def iter_batches(self, movie_ids: Sequence[int]) -> Iterator[List[int]]:
        """Chunk movie ids into fixed-size batches, preserving order."""
        size = self.settings.batch_size
        ids = list(movie_ids)
        for i in range(0, len(ids), size):
            yield ids[i:i + size]

    def iter_observation_batches(self, movie_ids: Sequence[int]) -> Iterator[Tuple[List[int], pd.DataFrame]]:
        """Yield (batch movie ids, observations) for every batch of ``movie_ids``."""
        total_batches = -(-len(movie_ids) // self.settings.batch_size) if movie_ids else 0
        for batch_num, batch in enumerate(self.iter_batches(movie_ids), start=1):
            logger.info(f"Processing batch {batch_num}/{total_batches} ({len(batch)} movies)")
            yield batch, self.extract_batch(batch)

    def extract_batch(self, movie_ids: Sequence[int]) -> pd.DataFrame:
        """Load credits and movie facts for one batch and extract its pair observations."""
        credits = self.credit_source.get_credits_frame(movie_ids)
        facts = self.credit_source.get_movie_facts_frame(movie_ids)
        return self.extract_pairs(credits, facts)

    def extract_pairs(self, credits: pd.DataFrame, facts: pd.DataFrame) -> pd.DataFrame:
        """Turn credit rows into canonical, classified, per-film pair observations.

        Only top-billed cast, directors and key crew take part, which keeps a film
        with hundreds of credits from producing hundreds of thousands of pairs.
        """
        credits = self._drop_malformed(credits)
        if credits.empty:
            return _empty_observations()

        credits = self._annotate(credits)
        credits = credits[credits["top_cast"] | credits["director"] | credits["key_crew"]]
        if credits.empty:
            return _empty_observations()

        # Self-join within each film; a < b canonicalizes and drops self pairs in one step
        pairs = credits.merge(credits, on="movie_id", suffixes=("_a", "_b"))
        pairs = pairs[pairs["person_id_a"] < pairs["person_id_b"]]
        pairs = pairs[self._eligible(pairs)]
        if pairs.empty:
            return _empty_observations()

        pairs = pairs.copy()
        pairs["collaboration_type"] = pairs.apply(
            lambda r: classify(r["role_kind_a"], r["job_a"], r["role_kind_b"], r["job_b"],
                               self.settings.key_crew_jobs).value,
            axis=1,
        )
        pairs = pairs[pairs["collaboration_type"] != CollaborationType.OTHER.value]

        # One observation per (pair, film), keeping the highest-precedence type
        pairs["type_rank"] = pairs["collaboration_type"].map(lambda t: CollaborationType(t).precedence)
        pairs = pairs.sort_values(["person_id_a", "person_id_b", "movie_id", "type_rank"])
        pairs = pairs.drop_duplicates(subset=["person_id_a", "person_id_b", "movie_id"], keep="first")

        observations = self._attach_facts(pairs, facts)
        logger.debug(f"Extracted {len(observations)} pair observations from {credits['movie_id'].nunique()} movies")
        return observations

    def _drop_malformed(self, credits: pd.DataFrame) -> pd.DataFrame:
        """Drop rows without a movie/person reference or with an unknown role kind."""
        if credits.empty:
            return credits
        missing_ref = credits["movie_id"].isna() | credits["person_id"].isna()
        bad_role = ~credits["role_kind"].isin([CAST, CREW])
        malformed = credits[missing_ref | bad_role]
        for row in malformed.itertuples(index=False):
            logger.warning(
                f"Skipping malformed credit row: movie_id={row.movie_id}, person_id={row.person_id}, "
                f"role_kind={row.role_kind}"
            )
        credits = credits[~(missing_ref | bad_role)].copy()
        credits["movie_id"] = credits["movie_id"].astype("int64")
        credits["person_id"] = credits["person_id"].astype("int64")
        return credits

    def _annotate(self, credits: pd.DataFrame) -> pd.DataFrame:
        credits = credits.copy()
        order = pd.to_numeric(credits["billing_order"], errors="coerce")
        credits["top_cast"] = (credits["role_kind"] == CAST) & order.notna() & (order <= self.settings.top_cast_cutoff)
        credits["director"] = credits["job"] == DIRECTOR_JOB
        credits["key_crew"] = credits["job"].isin(list(self.settings.key_crew_jobs))
        return credits

    @staticmethod
    def _eligible(pairs: pd.DataFrame) -> pd.Series:
        top_a, top_b = pairs["top_cast_a"], pairs["top_cast_b"]
        dir_a, dir_b = pairs["director_a"], pairs["director_b"]
        key_a, key_b = pairs["key_crew_a"], pairs["key_crew_b"]
        return (
            (top_a & top_b)
            | (top_a & dir_b) | (dir_a & top_b)
            | (dir_a & dir_b)
            | (dir_a & key_b) | (key_a & dir_b)
            | (key_a & key_b)
        )

    def _attach_facts(self, pairs: pd.DataFrame, facts: pd.DataFrame) -> pd.DataFrame:
        if facts.empty:
            logger.info(f"Skipping movies {sorted(pairs['movie_id'].unique().tolist())}: no movie facts")
            return _empty_observations()
        facts = facts[FACT_COLUMNS].astype({"movie_id": "int64"})
        merged = pairs.merge(facts, on="movie_id", how="left")

        undated = merged[merged["release_date"].isna()]["movie_id"].unique()
        for movie_id in undated:
            logger.info(f"Skipping movie {movie_id}: no release date")
        merged = merged[merged["release_date"].notna()]
        if merged.empty:
            return _empty_observations()

        release = pd.to_datetime(merged["release_date"])
        merged = merged.assign(
            person_a_id=merged["person_id_a"].astype("int64"),
            person_b_id=merged["person_id_b"].astype("int64"),
            year=release.dt.year.astype("int64"),
            release_date=release.dt.date,
            rating=merged["rating"].astype(object).where(merged["rating"].notna(), None),
            revenue=merged["revenue"].astype(object).where(merged["revenue"].notna(), None),
        )
        return merged[OBSERVATION_COLUMNS].sort_values(
            ["person_a_id", "person_b_id", "movie_id"]
        ).reset_index(drop=True)


def _empty_observations() -> pd.DataFrame:
    return pd.DataFrame(columns=OBSERVATION_COLUMNS)
