from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pandas as pd
from filelock import FileLock
from joblib import Parallel, delayed

from core.exceptions import StoreLoadError
from domain.history import StationHistory, group_histories, normalize_frame
from domain.models import FEATURE_FIELDS

MANIFEST_NAME = "_manifest.json"
LOCK_NAME = ".store.lock"
SCHEMES = ("station", "round_robin")


def station_shard_name(station_id: int) -> str:
    return f"station_{station_id}.json"


def chunk_shard_name(index: int) -> str:
    return f"chunk_{index}.json"


def _frame_to_records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    out = frame[list(FEATURE_FIELDS)].copy()
    out["timestamp"] = out["timestamp"].map(lambda ts: ts.isoformat())
    return out.to_dict("records")


def _json_default(value: Any) -> Any:
    # numpy scalars coming out of the frame
    if hasattr(value, "item"):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class PartitionedFeatureStore:
    """
    Directory of self-contained JSON shards of merged feature vectors.

    Shards hold complete records only. ``station`` writes one shard per
    station; ``round_robin`` deals the sorted fleet sequence over a fixed
    number of chunks, so stations interleave and are regrouped on load.
    The manifest is written last and lists every shard the load requires.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_NAME

    # ------------------------------------------------------------------ write
    def write(self, frame: pd.DataFrame, scheme: str = "station", shard_count: int = 16) -> dict[str, Any]:
        if scheme not in SCHEMES:
            raise ValueError(f"unknown partition scheme {scheme!r}")
        self.root.mkdir(parents=True, exist_ok=True)

        with FileLock(str(self.root / LOCK_NAME)):
            self._clear()
            shards = self._partition(frame, scheme, shard_count)
            for name, part in shards.items():
                self._write_json(self.root / name, _frame_to_records(part))

            manifest = {
                "scheme": scheme,
                "shards": sorted(shards),
                "records": int(len(frame)),
                "stations": int(frame["station_id"].nunique()) if len(frame) else 0,
            }
            self._write_json(self.manifest_path, manifest)

        logging.info("Wrote %s records to %s shards in %s", len(frame), len(shards), self.root)
        return manifest

    @staticmethod
    def _partition(frame: pd.DataFrame, scheme: str, shard_count: int) -> dict[str, pd.DataFrame]:
        if scheme == "station":
            return {
                station_shard_name(int(station_id)): group
                for station_id, group in frame.groupby("station_id", sort=True)
            }
        if shard_count <= 0:
            raise ValueError("shard_count must be positive")
        positions = pd.RangeIndex(len(frame)) % shard_count
        return {
            chunk_shard_name(k): frame.iloc[positions == k]
            for k in range(shard_count)
        }

    def _clear(self) -> None:
        if self.manifest_path.exists():
            self.manifest_path.unlink()
        for pattern in ("station_*.json", "chunk_*.json"):
            for old in self.root.glob(pattern):
                old.unlink()

    @staticmethod
    def _write_json(path: Path, payload: Any) -> None:
        tmp = path.with_suffix(path.suffix + ".part")
        tmp.write_text(json.dumps(payload, default=_json_default), encoding="utf-8")
        tmp.replace(path)

    # ------------------------------------------------------------------- load
    def read_manifest(self) -> dict[str, Any]:
        if not self.manifest_path.exists():
            raise StoreLoadError(f"{self.root}: no {MANIFEST_NAME}, store is missing or incomplete")
        try:
            manifest = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StoreLoadError(f"{self.manifest_path}: {exc}") from None
        if not isinstance(manifest, dict) or not isinstance(manifest.get("shards"), list):
            raise StoreLoadError(f"{self.manifest_path}: malformed manifest")
        return manifest

    def _read_shard(self, name: str) -> pd.DataFrame:
        path = self.root / name
        try:
            records = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StoreLoadError(f"{path}: {exc}") from None
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise StoreLoadError(f"{path}: expected a JSON array of feature vectors")
        frame = pd.DataFrame(records, columns=list(FEATURE_FIELDS))
        incomplete = frame.columns[frame.isna().any()].tolist()
        if incomplete:
            raise StoreLoadError(f"{path}: feature vectors missing {incomplete}")
        try:
            return normalize_frame(frame)
        except (KeyError, ValueError, TypeError) as exc:
            raise StoreLoadError(f"{path}: invalid feature vector ({exc})") from None

    def load_frame(self, n_jobs: int = -1) -> pd.DataFrame:
        """Read every shard listed in the manifest, in parallel, into one frame."""
        manifest = self.read_manifest()
        names = manifest["shards"]
        frames = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(self._read_shard)(name) for name in names
        )
        logging.info("Read %s shards (%s scheme) from %s", len(names), manifest.get("scheme"), self.root)
        frames = [f for f in frames if len(f)]
        if frames:
            frame = pd.concat(frames, ignore_index=True)
        else:
            frame = normalize_frame(pd.DataFrame(columns=list(FEATURE_FIELDS)))
        expected = manifest.get("records")
        if expected is not None and int(expected) != len(frame):
            raise StoreLoadError(
                f"{self.root}: manifest lists {expected} records, shards hold {len(frame)}"
            )
        return frame

    def load(self, n_jobs: int = -1) -> dict[int, StationHistory]:
        histories = group_histories(self.load_frame(n_jobs))
        logging.info("Loaded %s stations from %s", len(histories), self.root)
        return histories
