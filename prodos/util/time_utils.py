from datetime import datetime, timezone


def iso_format_z(datetime_obj: datetime, timespec: str = "milliseconds") -> str:
    """
    Format a datetime as an ISO 8601 timestamp. Includes the Z for clarity that it is UTC.

    Example with milliseconds: 2015-09-12T08:41:12.397Z
    Example with seconds: 2015-09-12T08:41:12Z
    """
    return datetime_obj.astimezone(timezone.utc).isoformat(timespec=timespec).replace("+00:00", "Z")


def iso_now() -> str:
    """
    Current UTC time in the format used for all stored timestamps.
    """
    return iso_format_z(datetime.now(timezone.utc))


## Tests


def test_iso_format_z():
    dt = datetime(2015, 9, 12, 8, 41, 12, 397217, tzinfo=timezone.utc)
    assert iso_format_z(dt) == "2015-09-12T08:41:12.397Z"
    assert iso_format_z(dt, timespec="seconds") == "2015-09-12T08:41:12Z"
    assert iso_now().endswith("Z")
