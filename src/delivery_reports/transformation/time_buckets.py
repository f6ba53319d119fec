"""
Calendar features derived from order and delivery timestamps.
"""
import pandas as pd

SEASONS = {
    3: 'SPRING', 4: 'SPRING', 5: 'SPRING',
    6: 'SUMMER', 7: 'SUMMER', 8: 'SUMMER',
    9: 'AUTUMN', 10: 'AUTUMN', 11: 'AUTUMN',
}

MINUTES_PER_DAY = 24 * 60


def season_of_month(month):
    """Map a month number (1-12) to its season label."""
    if month is None or pd.isna(month):
        return None
    return SEASONS.get(int(month), 'WINTER')


def _as_datetimes(series):
    if pd.api.types.is_datetime64_any_dtype(series):
        return series
    return pd.to_datetime(series)


def year(series):
    return _as_datetimes(series).dt.year


def month(series):
    return _as_datetimes(series).dt.month


def year_month(series):
    """Format timestamps as 'YYYY-MM' strings."""
    return _as_datetimes(series).dt.strftime('%Y-%m')


def day_name(series):
    return _as_datetimes(series).dt.day_name()


def hour(series):
    """
    Hour of day for either timestamps or time-of-day offsets.
    """
    if pd.api.types.is_timedelta64_dtype(series):
        hours = (series.dt.total_seconds() // 3600) % 24
        if hours.notnull().all():
            hours = hours.astype('int64')
        return hours
    return _as_datetimes(series).dt.hour


def time_slot(series, width=2):
    """Start hour of the fixed-width slot containing each value."""
    return (hour(series) // width) * width


def season(series):
    return month(series).map(season_of_month)


def minutes_between(start, end, wrap_midnight=True):
    """
    Elapsed minutes from start to end.

    When wrap_midnight is set, an end earlier than start is taken to be on
    the following day.
    """
    minutes = (end - start).dt.total_seconds() / 60
    if wrap_midnight:
        minutes = minutes.where(~(minutes < 0), minutes + MINUTES_PER_DAY)
    return minutes
