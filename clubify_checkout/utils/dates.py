from datetime import datetime, timezone
from typing import Any, Optional

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def parse_datetime(value: Any) -> Optional[datetime]:
    """
    datetime, epoch ou chaîne ISO 8601 ("Z" et "YYYY-MM-DD HH:MM:SS" acceptés).
    - None ou chaîne vide: None
    - valeur illisible: ValueError
    """
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        raise ValueError(f"date invalide: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, timezone.utc)
    text = str(value).strip()
    if not text:
        return None
    return datetime.fromisoformat(text.replace("Z", "+00:00"))

def now_like(reference: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """
    Retourne "maintenant" comparable à `reference`:
    - aware si reference est aware, naïf sinon (évite TypeError naive/aware)
    """
    current = now or utcnow()
    if reference is None or reference.tzinfo is not None:
        return current if current.tzinfo is not None else current.replace(tzinfo=timezone.utc)
    return current.astimezone(timezone.utc).replace(tzinfo=None) if current.tzinfo else current

def seconds_between(start: datetime, end: datetime) -> float:
    if (start.tzinfo is None) != (end.tzinfo is None):
        # Aligne un horodatage naïf sur UTC
        start = start if start.tzinfo else start.replace(tzinfo=timezone.utc)
        end = end if end.tzinfo else end.replace(tzinfo=timezone.utc)
    return (end - start).total_seconds()
