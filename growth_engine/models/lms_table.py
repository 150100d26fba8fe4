"""
WHO Child Growth Standards (2006) LMS reference tables.

The tables ship as CSV resources (columns: sex, x, L, M, S, plus an optional
loh column marking length or height rows) and are loaded once per process.
``x`` is age in months for the age-based indicators and recumbent length in
cm for weight-for-length.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from config.settings import LMS_DATA_DIR
from growth_engine.models.errors import UnknownIndicatorOrSex

logger = logging.getLogger(__name__)


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"


class Indicator(str, Enum):
    WEIGHT_FOR_AGE = "wfa"
    LENGTH_HEIGHT_FOR_AGE = "lhfa"
    HEAD_CIRCUMFERENCE_FOR_AGE = "hcfa"
    WEIGHT_FOR_LENGTH = "wfl"


@dataclass(frozen=True)
class IndicatorSpec:
    indicator: Indicator
    title: str
    filename: str
    x_name: str            # 'age_months' or 'length_cm'
    value_name: str        # 'weight_kg', 'length_cm', 'head_circumference_cm'
    domain: Tuple[float, float]
    sanity_range: Tuple[float, float]


WEIGHT_RANGE_KG = (0.5, 50.0)
LENGTH_RANGE_CM = (30.0, 200.0)
HEAD_CIRCUMFERENCE_RANGE_CM = (20.0, 70.0)

INDICATOR_SPECS: Mapping[Indicator, IndicatorSpec] = MappingProxyType({
    Indicator.WEIGHT_FOR_AGE: IndicatorSpec(
        Indicator.WEIGHT_FOR_AGE, "Weight-for-age", "wfa_lms.csv",
        "age_months", "weight_kg", (0.0, 60.0), WEIGHT_RANGE_KG,
    ),
    Indicator.LENGTH_HEIGHT_FOR_AGE: IndicatorSpec(
        Indicator.LENGTH_HEIGHT_FOR_AGE, "Length/height-for-age", "lhfa_lms.csv",
        "age_months", "length_cm", (0.0, 60.0), LENGTH_RANGE_CM,
    ),
    Indicator.HEAD_CIRCUMFERENCE_FOR_AGE: IndicatorSpec(
        Indicator.HEAD_CIRCUMFERENCE_FOR_AGE, "Head circumference-for-age",
        "hcfa_lms.csv", "age_months", "head_circumference_cm", (0.0, 60.0),
        HEAD_CIRCUMFERENCE_RANGE_CM,
    ),
    Indicator.WEIGHT_FOR_LENGTH: IndicatorSpec(
        Indicator.WEIGHT_FOR_LENGTH, "Weight-for-length", "wfl_lms.csv",
        "length_cm", "weight_kg", (45.0, 110.0), WEIGHT_RANGE_KG,
    ),
})

# Dashboard codes: L = laki-laki, P = perempuan
_SEX_ALIASES = {
    "male": Sex.MALE, "m": Sex.MALE, "l": Sex.MALE, "boy": Sex.MALE,
    "boys": Sex.MALE, "laki-laki": Sex.MALE,
    "female": Sex.FEMALE, "f": Sex.FEMALE, "p": Sex.FEMALE, "girl": Sex.FEMALE,
    "girls": Sex.FEMALE, "perempuan": Sex.FEMALE,
}

_INDICATOR_ALIASES = {
    "wfa": Indicator.WEIGHT_FOR_AGE,
    "weight_for_age": Indicator.WEIGHT_FOR_AGE,
    "bb_u": Indicator.WEIGHT_FOR_AGE,
    "lhfa": Indicator.LENGTH_HEIGHT_FOR_AGE,
    "length_for_age": Indicator.LENGTH_HEIGHT_FOR_AGE,
    "height_for_age": Indicator.LENGTH_HEIGHT_FOR_AGE,
    "length_height_for_age": Indicator.LENGTH_HEIGHT_FOR_AGE,
    "tb_u": Indicator.LENGTH_HEIGHT_FOR_AGE,
    "hcfa": Indicator.HEAD_CIRCUMFERENCE_FOR_AGE,
    "head_circumference_for_age": Indicator.HEAD_CIRCUMFERENCE_FOR_AGE,
    "lk_u": Indicator.HEAD_CIRCUMFERENCE_FOR_AGE,
    "wfl": Indicator.WEIGHT_FOR_LENGTH,
    "weight_for_length": Indicator.WEIGHT_FOR_LENGTH,
    "weight_for_length_height": Indicator.WEIGHT_FOR_LENGTH,
    "bb_tb": Indicator.WEIGHT_FOR_LENGTH,
}


def parse_sex(value) -> Sex:
    if isinstance(value, Sex):
        return value
    key = str(value).strip().lower() if value is not None else ""
    if key not in _SEX_ALIASES:
        raise UnknownIndicatorOrSex(f"Unknown sex {value!r}")
    return _SEX_ALIASES[key]


def parse_indicator(value) -> Indicator:
    if isinstance(value, Indicator):
        return value
    key = str(value).strip().lower().replace("-", "_").replace("/", "_") \
        if value is not None else ""
    if key not in _INDICATOR_ALIASES:
        raise UnknownIndicatorOrSex(f"Unknown indicator {value!r}")
    return _INDICATOR_ALIASES[key]


@dataclass(frozen=True)
class LMSRow:
    x: float
    sex: Sex
    l: float
    m: float
    s: float


@dataclass(frozen=True, eq=False)
class LMSSeries:
    """
    One sex-specific table of an indicator, sorted by x. Arrays are read-only.

    ``l_left``/``m_left``/``s_left`` hold the values approached from below
    each node. They equal the node row everywhere except where the table
    switches measurement (the lhfa length table ends at 24 months with a row
    0.7 cm above the height table's first row).
    """
    indicator: Indicator
    sex: Sex
    x: np.ndarray
    l: np.ndarray
    m: np.ndarray
    s: np.ndarray
    l_left: Optional[np.ndarray] = None
    m_left: Optional[np.ndarray] = None
    s_left: Optional[np.ndarray] = None

    def left_limit(self, i: int) -> Tuple[float, float, float]:
        if self.m_left is None:
            return float(self.l[i]), float(self.m[i]), float(self.s[i])
        return float(self.l_left[i]), float(self.m_left[i]), float(self.s_left[i])

    def __len__(self) -> int:
        return len(self.x)

    @property
    def coverage(self) -> Tuple[float, float]:
        return float(self.x[0]), float(self.x[-1])

    def row(self, i: int) -> LMSRow:
        return LMSRow(
            x=float(self.x[i]), sex=self.sex,
            l=float(self.l[i]), m=float(self.m[i]), s=float(self.s[i]),
        )

    def rows(self) -> Iterator[LMSRow]:
        for i in range(len(self)):
            yield self.row(i)


@dataclass(frozen=True)
class LMSReference:
    series: Mapping[Tuple[Indicator, Sex], LMSSeries]
    source: Optional[str] = None

    def get(self, indicator: Indicator, sex: Sex) -> LMSSeries:
        try:
            return self.series[(indicator, sex)]
        except KeyError:
            raise UnknownIndicatorOrSex(
                f"No LMS table for indicator={indicator!r}, sex={sex!r}"
            ) from None

    @property
    def indicators(self) -> list:
        return sorted({ind.value for ind, _ in self.series})


def _frozen(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


def _load_table(path: Path, spec: IndicatorSpec) -> dict:
    # round_trip: the published literals must survive parsing bit-for-bit
    df = pd.read_csv(path, float_precision="round_trip")
    required = {"sex", "x", "L", "M", "S"}
    missing = required - set(df.columns)
    if missing:
        raise ValueError(
            f"{path.name} missing columns: {sorted(missing)}. Required={sorted(required)}"
        )
    df = df.copy()
    df["sex"] = df["sex"].astype(str).map(parse_sex)
    has_loh = "loh" in df.columns
    if has_loh:
        df["loh"] = df["loh"].astype(str).str.strip().str.upper()
        if not df["loh"].isin(["L", "H"]).all():
            raise ValueError(f"{path.name}: loh must be 'L' (length) or 'H' (height)")

    series = {}
    for sex, sdf in df.groupby("sex", sort=False):
        if (sdf["M"] <= 0).any() or (sdf["S"] <= 0).any():
            raise ValueError(f"{path.name} ({sex.value}): M and S must be positive")
        if not np.isfinite(sdf[["L", "M", "S"]].to_numpy(dtype=float)).all():
            raise ValueError(f"{path.name} ({sex.value}): non-finite LMS values")

        left = sdf.iloc[0:0]
        if has_loh:
            # length row sharing x with a height row: the left limit at the switch
            sdf = sdf.assign(_h=sdf["loh"] == "H").sort_values(["x", "_h"], kind="mergesort")
            switch = sdf["x"].duplicated(keep="last")
            left, sdf = sdf[switch], sdf[~switch]
            kept_at_switch = sdf[sdf["x"].isin(left["x"])]
            if left["x"].duplicated().any() or (left["loh"] != "L").any() \
                    or (kept_at_switch["loh"] != "H").any():
                raise ValueError(
                    f"{path.name} ({sex.value}): x must be strictly increasing "
                    f"apart from one L/H pair at the length/height switch"
                )
        else:
            sdf = sdf.sort_values("x")

        xs = sdf["x"].to_numpy(dtype=float)
        if np.any(np.diff(xs) <= 0):
            raise ValueError(f"{path.name} ({sex.value}): x must be strictly increasing")
        lo, hi = spec.domain
        if xs[0] > lo or xs[-1] < hi:
            raise ValueError(
                f"{path.name} ({sex.value}): covers [{xs[0]:g}, {xs[-1]:g}], "
                f"needs [{lo:g}, {hi:g}]"
            )
        lms = [sdf[c].to_numpy(dtype=float) for c in ("L", "M", "S")]
        lms_left = [col.copy() for col in lms]
        if len(left):
            idx = np.searchsorted(xs, left["x"].to_numpy(dtype=float))
            for col, name in zip(lms_left, ("L", "M", "S")):
                col[idx] = left[name].to_numpy(dtype=float)
        series[(spec.indicator, sex)] = LMSSeries(
            indicator=spec.indicator, sex=sex, x=_frozen(xs),
            l=_frozen(lms[0]), m=_frozen(lms[1]), s=_frozen(lms[2]),
            l_left=_frozen(lms_left[0]), m_left=_frozen(lms_left[1]),
            s_left=_frozen(lms_left[2]),
        )
    for sex in Sex:
        if (spec.indicator, sex) not in series:
            raise ValueError(f"{path.name}: no rows for sex={sex.value}")
    return series


def load_reference(data_dir=None) -> LMSReference:
    """
    Load every indicator's LMS table from ``data_dir`` (defaults to the
    bundled WHO 2006 dataset). Raises FileNotFoundError if a table is absent
    and ValueError if a table breaks the ordering/positivity invariants.
    """
    d = Path(data_dir) if data_dir is not None else LMS_DATA_DIR
    if not d.exists():
        raise FileNotFoundError(f"WHO LMS directory not found: {d}")

    series = {}
    for spec in INDICATOR_SPECS.values():
        path = d / spec.filename
        if not path.exists():
            raise FileNotFoundError(f"WHO LMS table missing: {path}")
        loaded = _load_table(path, spec)
        series.update(loaded)
        logger.info(
            "Loaded %s LMS table from %s (%s)", spec.indicator.value, path.name,
            ", ".join(f"{s.sex.value}={len(s)} rows" for s in loaded.values()),
        )
    return LMSReference(series=MappingProxyType(series), source=str(d))


@lru_cache(maxsize=None)
def default_reference() -> LMSReference:
    return load_reference()
