from __future__ import annotations

from datetime import datetime, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
EPOCH_ISO = "1970-01-01T00:00:00+00:00"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def parse_iso(value: object) -> datetime | None:
    """Convierte un timestamp ISO-8601 a datetime con zona; None si no es válido.

    Los valores sin zona horaria se interpretan como UTC, igual que hace el
    backend al serializar ``updated_at``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = str(value).strip()
        if not raw:
            return None
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def updated_at_of(snapshot: dict | None) -> datetime:
    """``updated_at`` de un snapshot; ausente o inválido cuenta como época."""
    if not snapshot:
        return EPOCH
    return parse_iso(snapshot.get("updated_at")) or EPOCH


def is_newer(candidate: dict | None, reference: dict | None) -> bool:
    return updated_at_of(candidate) > updated_at_of(reference)
