from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import duckdb
import pandas as pd

from pacer.config import RunConfig
from pacer.metrics import ResponseOutcome, RunStatistics


@dataclass(slots=True)
class Storage:
    db_path: Path

    def __post_init__(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _init_schema(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_meta (
                    run_id TEXT PRIMARY KEY,
                    created_at TIMESTAMP,
                    config_json TEXT,
                    notes TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS request_outcomes (
                    run_id TEXT,
                    seq INTEGER,
                    succeeded BOOLEAN,
                    latency_ms DOUBLE,
                    status_code INTEGER,
                    error_type TEXT
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS in_flight_samples (
                    run_id TEXT,
                    seq INTEGER,
                    in_flight INTEGER
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS run_stats (
                    run_id TEXT PRIMARY KEY,
                    requested INTEGER,
                    succeeded INTEGER,
                    failed INTEGER,
                    success_rate DOUBLE,
                    median_latency_ms DOUBLE,
                    average_in_flight DOUBLE
                );
                """
            )

    def run_exists(self, run_id: str) -> bool:
        with self._connect() as con:
            result = con.execute(
                "SELECT COUNT(*) FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            return bool(result and result[0] > 0)

    def save_run(
        self,
        config: RunConfig,
        run_id: str,
        outcomes: Iterable[ResponseOutcome],
        samples: Iterable[int],
        stats: RunStatistics,
    ) -> None:
        metadata = dict(config.to_metadata())
        metadata["run_id"] = run_id
        config_json = json.dumps(metadata)
        with self._connect() as con:
            con.execute(
                "INSERT INTO run_meta VALUES (?, ?, ?, ?)",
                [run_id, config.created_at, config_json, config.notes],
            )
            con.execute(
                "INSERT INTO run_stats VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    run_id,
                    stats.requested,
                    stats.succeeded,
                    stats.failed,
                    stats.success_rate,
                    stats.median_latency_ms,
                    stats.average_in_flight,
                ],
            )
            outcomes_df = pd.DataFrame(
                [
                    {
                        "run_id": run_id,
                        "seq": seq,
                        "succeeded": o.succeeded,
                        "latency_ms": o.latency_ms,
                        "status_code": o.status_code,
                        "error_type": o.error_type.value if o.error_type else None,
                    }
                    for seq, o in enumerate(outcomes)
                ]
            )
            if not outcomes_df.empty:
                outcomes_df = outcomes_df.astype({"latency_ms": "Float64", "status_code": "Int64"})
                con.execute("INSERT INTO request_outcomes SELECT * FROM outcomes_df")
            samples_df = pd.DataFrame(
                [
                    {"run_id": run_id, "seq": seq, "in_flight": value}
                    for seq, value in enumerate(samples)
                ]
            )
            if not samples_df.empty:
                con.execute("INSERT INTO in_flight_samples SELECT * FROM samples_df")

    def list_runs(self) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                """
                SELECT m.run_id, m.created_at, m.notes, s.success_rate,
                       s.median_latency_ms, s.average_in_flight
                FROM run_meta m LEFT JOIN run_stats s USING (run_id)
                ORDER BY m.created_at DESC
                """
            ).fetchdf()

    def load_run_meta(self, run_id: str) -> dict[str, object] | None:
        with self._connect() as con:
            row = con.execute(
                "SELECT config_json FROM run_meta WHERE run_id = ?",
                [run_id],
            ).fetchone()
            if not row:
                return None
            return json.loads(row[0])

    def load_stats(self, run_id: str) -> RunStatistics | None:
        with self._connect() as con:
            row = con.execute(
                """
                SELECT requested, succeeded, success_rate, median_latency_ms, average_in_flight
                FROM run_stats WHERE run_id = ?
                """,
                [run_id],
            ).fetchone()
        if not row:
            return None
        return RunStatistics(
            requested=int(row[0]),
            succeeded=int(row[1]),
            success_rate=float(row[2]),
            median_latency_ms=float(row[3]),
            average_in_flight=float(row[4]),
        )

    def load_outcomes(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM request_outcomes WHERE run_id = ? ORDER BY seq",
                [run_id],
            ).fetchdf()

    def load_samples(self, run_id: str) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                "SELECT * FROM in_flight_samples WHERE run_id = ? ORDER BY seq",
                [run_id],
            ).fetchdf()
