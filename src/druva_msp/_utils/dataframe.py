"""DataFrame conversion utilities."""

from typing import Iterable

import pandas as pd

# Unix timestamps below this are in seconds, at or above it in milliseconds
MILLISECOND_THRESHOLD = 10_000_000_000


def records_to_dataframe(
    records: Iterable[dict],
    timestamp_fields: Iterable[str] = (),
) -> pd.DataFrame:
    """
    Convert iterable of record dicts to pandas DataFrame.

    Args:
        records: Iterable of dictionaries (e.g., from collect_all)
        timestamp_fields: Columns holding Unix timestamps (seconds or
            milliseconds) to convert to UTC datetimes

    Returns:
        pandas DataFrame with all records

    Example:
        records = [{"timestamp": 1704067200, "msg": "hello"}]
        df = records_to_dataframe(records, timestamp_fields=["timestamp"])
        print(df.dtypes)  # timestamp is datetime64[ns, UTC]
    """
    df = pd.DataFrame(list(records))

    if df.empty:
        return df

    for column in timestamp_fields:
        if column not in df.columns:
            continue
        values = pd.to_numeric(df[column], errors="coerce")
        millis = values.where(values >= MILLISECOND_THRESHOLD, values * 1000)
        df[column] = pd.to_datetime(millis, unit="ms", utc=True)

    return df
