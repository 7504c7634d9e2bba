"""
Input Boundary Validation
Rejects malformed observation records before any algorithm runs
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from pydantic import ValidationError

from .models import Observation

logger = logging.getLogger(__name__)


REQUIRED_COLUMNS = ("id", "value", "latitude", "longitude")
MODEL_FIELDS = ("id", "value", "latitude", "longitude", "timestamp", "cluster_label", "attributes")

COLUMN_ALIASES = {
    "observation_id": "id",
    "property_id": "id",
    "parcel_id": "id",
    "price": "value",
    "market_value": "value",
    "lat": "latitude",
    "lng": "longitude",
    "lon": "longitude",
    "long": "longitude",
    "date": "timestamp",
    "datetime": "timestamp",
    "observed_at": "timestamp",
    "cluster": "cluster_label",
}


class ObservationValidationError(ValueError):
    """Raised when one or more observation records are malformed"""

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        preview = "; ".join(self.errors[:5])
        if len(self.errors) > 5:
            preview += f"; ... ({len(self.errors) - 5} more)"
        super().__init__(f"{len(self.errors)} invalid observation record(s): {preview}")


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )


class ObservationValidator:
    """
    Checks a snapshot of observation records

    Records may be ``Observation`` instances or plain mappings as handed over by
    a persistence layer. Every problem is collected so that callers see the
    whole picture in one pass.
    """

    def collect(self, records: Iterable[Any]) -> Tuple[List[Observation], List[str]]:
        """Return the valid observations and a message per rejected record"""
        observations: List[Observation] = []
        errors: List[str] = []
        first_seen: Dict[str, int] = {}

        for index, record in enumerate(records):
            if isinstance(record, Observation):
                observation = record
            elif isinstance(record, Mapping):
                try:
                    observation = Observation.model_validate(dict(record))
                except ValidationError as exc:
                    errors.append(f"record {index} (id={record.get('id')!r}): {_describe(exc)}")
                    continue
            else:
                errors.append(f"record {index}: unsupported record type {type(record).__name__}")
                continue

            if observation.id in first_seen:
                errors.append(
                    f"record {index} (id={observation.id!r}): duplicate id, "
                    f"first seen at record {first_seen[observation.id]}"
                )
                continue

            first_seen[observation.id] = index
            observations.append(observation)

        awareness = {
            o.timestamp.utcoffset() is not None
            for o in observations
            if o.timestamp is not None
        }
        if len(awareness) > 1:
            errors.append("timestamps mix timezone-aware and naive values")

        return observations, errors

    def validate(self, records: Iterable[Any]) -> Tuple[bool, List[str]]:
        """Validate records without raising"""
        _, errors = self.collect(records)
        return len(errors) == 0, errors


def validate_observations(records: Iterable[Any]) -> Tuple[Observation, ...]:
    """
    Validate a snapshot and return it as an immutable tuple

    Raises:
        ObservationValidationError: if any record is malformed
    """
    observations, errors = ObservationValidator().collect(records)
    if errors:
        logger.warning(f"Rejected snapshot: {len(errors)} invalid record(s)")
        raise ObservationValidationError(errors)
    return tuple(observations)


def standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Normalise column names and map known aliases onto model fields"""
    renamed = {column: str(column).strip().lower().replace(" ", "_") for column in df.columns}
    df = df.rename(columns=renamed)
    aliases = {
        column: target
        for column, target in COLUMN_ALIASES.items()
        if column in df.columns and target not in df.columns
    }
    return df.rename(columns=aliases)


def _clean(value: Any) -> Any:
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse one timestamp cell; missing cells give None, unparseable ones raise ValueError"""
    if _clean(value) is None:
        return None
    try:
        parsed = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"unparseable timestamp {value!r}") from exc
    if pd.isna(parsed):
        raise ValueError(f"unparseable timestamp {value!r}")
    return parsed.to_pydatetime()


def observations_from_frame(df: pd.DataFrame) -> Tuple[Observation, ...]:
    """
    Build a validated snapshot from a DataFrame

    Columns outside the model are carried in ``attributes``. Timestamp cells
    that cannot be parsed reject the snapshot like any other malformed field.
    """
    df = standardize_columns(df)

    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise ObservationValidationError([f"missing required column(s): {', '.join(missing)}"])

    extra_columns = [column for column in df.columns if column not in MODEL_FIELDS]
    records = []
    timestamp_errors = []
    for index, row in enumerate(df.to_dict("records")):
        record = {
            key: _clean(row[key])
            for key in MODEL_FIELDS
            if key in row and key not in ("attributes", "timestamp")
        }
        if "timestamp" in row:
            try:
                record["timestamp"] = _parse_timestamp(row["timestamp"])
            except ValueError as exc:
                timestamp_errors.append(f"record {index} (id={record.get('id')!r}): timestamp: {exc}")
                record["timestamp"] = None
        attributes = {key: _clean(row[key]) for key in extra_columns}
        record["attributes"] = {k: v for k, v in attributes.items() if v is not None}
        records.append(record)

    logger.debug(f"Converted {len(records)} DataFrame rows into observation records")

    observations, errors = ObservationValidator().collect(records)
    errors = timestamp_errors + errors
    if errors:
        logger.warning(f"Rejected DataFrame snapshot: {len(errors)} invalid record(s)")
        raise ObservationValidationError(errors)
    return tuple(observations)


def observations_to_frame(observations: Iterable[Observation]) -> pd.DataFrame:
    """Flatten observations into a DataFrame (one row per observation)"""
    data = [
        {
            "id": o.id,
            "value": o.value,
            "latitude": o.latitude,
            "longitude": o.longitude,
            "timestamp": o.timestamp,
            "cluster_label": o.cluster_label,
        }
        for o in observations
    ]
    return pd.DataFrame(data, columns=["id", "value", "latitude", "longitude", "timestamp", "cluster_label"])
