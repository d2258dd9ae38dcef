# utils/json_provider.py
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timezone
from flask.json.provider import DefaultJSONProvider

class CustomJSONProvider(DefaultJSONProvider):
    """Custom JSON provider: dates as YYYY-MM-DD, datetimes as ISO 8601, records as dicts"""
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.strftime('%Y-%m-%d')
        if is_dataclass(obj) and not isinstance(obj, type):
            return asdict(obj)
        return super().default(obj)


def format_timestamp(epoch_seconds):
    """Render a time.time() value as an ISO 8601 UTC string, None passes through"""
    if epoch_seconds is None:
        return None
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()
