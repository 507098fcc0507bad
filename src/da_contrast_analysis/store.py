"""Session and trial-group containers with structured lookups."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Generic, List, Mapping, NamedTuple, Optional, Sequence, TypeVar

import numpy as np
import pandas as pd

from .errors import MissingFieldError

logger = logging.getLogger(__name__)

HIT = "hit"
MISS = "miss"
FALSE_ALARM = "fa"
CATEGORIES = (HIT, MISS, FALSE_ALARM)

T = TypeVar("T")


class TrialKey(NamedTuple):
    """Key of a trial group: trial category and contrast in percent.

    ``contrast`` is ``None`` for the category-wide group pooling all
    contrasts (e.g. every hit of the session).
    """

    category: str
    contrast: Optional[int] = None


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Either a found value or the reason it is missing."""

    value: Optional[T] = None
    reason: Optional[str] = None

    @classmethod
    def found(cls, value: T) -> "Lookup[T]":
        return cls(value=value)

    @classmethod
    def missing(cls, reason: str) -> "Lookup[T]":
        return cls(reason=reason)

    @property
    def ok(self) -> bool:
        return self.reason is None

    def unwrap(self) -> T:
        if not self.ok:
            raise MissingFieldError(self.reason)
        return self.value  # type: ignore[return-value]


def _readonly(array: np.ndarray) -> np.ndarray:
    out = np.array(array, dtype=np.float64, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class ContrastTrialGroup:
    """Trial matrix for one (category, contrast) pair.

    Attributes
    ----------
    category:
        Trial category (``"hit"``, ``"miss"`` or ``"fa"``).
    contrast:
        Stimulus contrast in percent, ``None`` for category-wide groups.
    zall:
        z-scored traces of shape (trials, samples). ``None`` marks a group
        whose trial matrix is absent upstream.
    ts:
        Time vector of length ``samples``, increasing.
    trial_error:
        Optional per-trial vector; its length must equal the trial count.
    """

    category: str
    contrast: Optional[int]
    zall: Optional[np.ndarray]
    ts: Optional[np.ndarray]
    trial_error: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        if self.contrast is not None:
            contrast = int(self.contrast)
            if contrast < 0:
                raise ValueError(f"Contrast must be a non-negative percent, got {self.contrast}")
            object.__setattr__(self, "contrast", contrast)
        if self.zall is not None:
            zall = np.atleast_2d(_readonly(self.zall))
            if zall.ndim != 2:
                raise ValueError(f"Trial matrix must be 2D, got shape {zall.shape}")
            object.__setattr__(self, "zall", zall)
        if self.ts is not None:
            ts = _readonly(self.ts).ravel()
            if ts.size > 1 and np.any(np.diff(ts) <= 0):
                raise ValueError("Time vector must be strictly increasing")
            object.__setattr__(self, "ts", ts)
        if self.zall is not None and self.ts is not None and self.zall.shape[1] != self.ts.shape[0]:
            raise ValueError(
                f"Trial matrix has {self.zall.shape[1]} samples but time vector has {self.ts.shape[0]}"
            )
        if self.trial_error is not None:
            err = _readonly(self.trial_error).ravel()
            if err.shape[0] != self.trial_count:
                raise ValueError(f"Error vector has {err.shape[0]} entries for {self.trial_count} trials")
            object.__setattr__(self, "trial_error", err)

    @property
    def key(self) -> TrialKey:
        return TrialKey(self.category, self.contrast)

    @property
    def complete(self) -> bool:
        return self.zall is not None and self.ts is not None

    @property
    def trial_count(self) -> int:
        return 0 if self.zall is None else int(self.zall.shape[0])

    @property
    def proportion(self) -> float:
        if self.contrast is None:
            return np.nan
        return self.contrast / 100.0


def _as_times(values: Sequence[float] | np.ndarray | None) -> np.ndarray:
    if values is None:
        return np.empty(0)
    return _readonly(np.asarray(values)).ravel()


@dataclass(frozen=True)
class BehaviorRecord:
    """Trial-level behavioural timestamps for one session."""

    hit_times: np.ndarray = field(default_factory=lambda: np.empty(0))
    miss_times: np.ndarray = field(default_factory=lambda: np.empty(0))
    hit_times_by_contrast: Mapping[int, np.ndarray] = field(default_factory=dict)
    miss_times_by_contrast: Mapping[int, np.ndarray] = field(default_factory=dict)
    reaction_times_ms: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "hit_times", _as_times(self.hit_times))
        object.__setattr__(self, "miss_times", _as_times(self.miss_times))
        object.__setattr__(
            self, "hit_times_by_contrast", {int(c): _as_times(v) for c, v in self.hit_times_by_contrast.items()}
        )
        object.__setattr__(
            self, "miss_times_by_contrast", {int(c): _as_times(v) for c, v in self.miss_times_by_contrast.items()}
        )
        if self.reaction_times_ms is not None:
            object.__setattr__(self, "reaction_times_ms", _as_times(self.reaction_times_ms))

    def pooled_times(self) -> np.ndarray:
        """Sorted hit and miss timestamps together."""

        return np.sort(np.concatenate([self.hit_times, self.miss_times]))

    def contrasts(self) -> List[int]:
        return sorted(set(self.hit_times_by_contrast) | set(self.miss_times_by_contrast))

    def times_for(self, category: str, contrast: int) -> Lookup[np.ndarray]:
        source = {HIT: self.hit_times_by_contrast, MISS: self.miss_times_by_contrast}.get(category)
        if source is None:
            return Lookup.missing(f"No per-contrast timestamps kept for category '{category}'")
        if contrast not in source:
            return Lookup.missing(f"No {category} timestamps for contrast {contrast}%")
        return Lookup.found(source[contrast])


@dataclass(frozen=True)
class Session:
    """One recording day.

    All complete trial groups share one time vector; trial counts may
    differ between groups.
    """

    index: int
    groups: Mapping[TrialKey, ContrastTrialGroup]
    date: str = ""
    behavior: BehaviorRecord = field(default_factory=BehaviorRecord)
    threshold: Optional[float] = None

    def __post_init__(self) -> None:
        groups: Dict[TrialKey, ContrastTrialGroup] = {}
        for key, group in self.groups.items():
            key = TrialKey(*key)
            if key != group.key:
                raise ValueError(f"Session {self.index}: key {key} does not match group {group.key}")
            groups[key] = group
        object.__setattr__(self, "groups", groups)

        reference = None
        for group in groups.values():
            if group.ts is None:
                continue
            if reference is None:
                reference = group.ts
            elif group.ts.shape != reference.shape or not np.allclose(group.ts, reference):
                raise ValueError(f"Session {self.index}: trial groups do not share a time vector ({group.key})")

    @property
    def label(self) -> str:
        return f"Session {self.index} ({self.date})" if self.date else f"Session {self.index}"

    def lookup(self, category: str, contrast: Optional[int] = None) -> Lookup[ContrastTrialGroup]:
        group = self.groups.get(TrialKey(category, contrast))
        if group is None:
            what = f"{category} contrast {contrast}%" if contrast is not None else f"{category} trials"
            return Lookup.missing(f"{self.label}: no {what}")
        if not group.complete:
            return Lookup.missing(f"{self.label}: {group.key} has no trial matrix or time vector")
        return Lookup.found(group)

    def contrast_groups(self, category: str = HIT) -> Dict[int, ContrastTrialGroup]:
        """Per-contrast groups of ``category`` sorted by contrast (incomplete ones included)."""

        selected = {
            key.contrast: group
            for key, group in self.groups.items()
            if key.category == category and key.contrast is not None
        }
        return {c: selected[c] for c in sorted(selected)}

    def contrasts(self, category: str = HIT) -> List[int]:
        return list(self.contrast_groups(category))

    def time_vector(self) -> Lookup[np.ndarray]:
        for group in self.groups.values():
            if group.ts is not None:
                return Lookup.found(group.ts)
        return Lookup.missing(f"{self.label}: no time vector")


_BEHAVIOR_CONTRAST_KEY = re.compile(r"^(hit|miss)_times_(\d+)$")


def _resolve_path(base: Path, value: str | Path) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return base / path


def _load_behavior(path: Path) -> BehaviorRecord:
    with np.load(path) as data:
        by_contrast: Dict[str, Dict[int, np.ndarray]] = {HIT: {}, MISS: {}}
        for name in data.files:
            match = _BEHAVIOR_CONTRAST_KEY.match(name)
            if match:
                by_contrast[match.group(1)][int(match.group(2))] = data[name]
        return BehaviorRecord(
            hit_times=data["hit_times"] if "hit_times" in data.files else None,
            miss_times=data["miss_times"] if "miss_times" in data.files else None,
            hit_times_by_contrast=by_contrast[HIT],
            miss_times_by_contrast=by_contrast[MISS],
            reaction_times_ms=data["reaction_times_ms"] if "reaction_times_ms" in data.files else None,
        )


def _optional(value: object) -> Optional[object]:
    return None if pd.isna(value) else value


def load_sessions_from_manifest(manifest_path: str | Path) -> List[Session]:
    """Load sessions described by a CSV manifest.

    The manifest has one row per trial group with columns ``session_index``,
    ``category``, ``contrast`` (blank for category-wide groups) and
    ``trials_path`` (an ``.npz`` holding ``zall`` and ``ts``). Optional
    columns: ``date``, ``threshold`` and ``behavior_path`` (an ``.npz`` with
    ``hit_times``, ``miss_times``, ``reaction_times_ms`` and per-contrast
    ``hit_times_<c>`` / ``miss_times_<c>`` arrays). Relative paths resolve
    against the manifest's directory. Missing trial files are logged and
    kept as incomplete groups so downstream analyses can skip them.
    """

    manifest = Path(manifest_path)
    if not manifest.exists():
        raise FileNotFoundError(f"Manifest not found: {manifest}")
    df = pd.read_csv(manifest)
    required = {"session_index", "category", "contrast", "trials_path"}
    missing = required - set(df.columns)
    if missing:
        raise ValueError(f"Manifest missing required columns: {sorted(missing)}")

    base = manifest.parent
    sessions: List[Session] = []
    for session_index, rows in df.groupby("session_index", sort=True):
        first = rows.iloc[0]
        groups: Dict[TrialKey, ContrastTrialGroup] = {}
        for _, row in rows.iterrows():
            category = str(row["category"]).lower()
            contrast = _optional(row["contrast"])
            contrast = None if contrast is None else int(contrast)
            trials_path = _resolve_path(base, str(row["trials_path"]))
            if trials_path.exists():
                with np.load(trials_path) as data:
                    zall = data["zall"] if "zall" in data.files else None
                    ts = data["ts"] if "ts" in data.files else None
            else:
                logger.warning("Session %s: trial file %s not found", session_index, trials_path)
                zall, ts = None, None
            group = ContrastTrialGroup(category=category, contrast=contrast, zall=zall, ts=ts)
            groups[group.key] = group

        behavior = BehaviorRecord()
        behavior_value = _optional(first.get("behavior_path"))
        if behavior_value is not None:
            behavior_path = _resolve_path(base, str(behavior_value))
            if behavior_path.exists():
                behavior = _load_behavior(behavior_path)
            else:
                logger.warning("Session %s: behaviour file %s not found", session_index, behavior_path)

        threshold = _optional(first.get("threshold"))
        date = _optional(first.get("date"))
        sessions.append(
            Session(
                index=int(session_index),
                groups=groups,
                date="" if date is None else str(date),
                behavior=behavior,
                threshold=None if threshold is None else float(threshold),
            )
        )

    logger.info("Loaded %d sessions from %s", len(sessions), manifest)
    return sessions


__all__ = [
    "HIT",
    "MISS",
    "FALSE_ALARM",
    "CATEGORIES",
    "TrialKey",
    "Lookup",
    "ContrastTrialGroup",
    "BehaviorRecord",
    "Session",
    "load_sessions_from_manifest",
]
