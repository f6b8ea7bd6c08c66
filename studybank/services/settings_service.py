"""Service layer for local settings."""
from sqlalchemy.orm import Session as DbSession

from studybank.models.db.settings import SETTINGS_ID, AppSettings


def get_settings(db: DbSession) -> AppSettings:
    """Get settings row, creating defaults on first use."""
    settings = db.get(AppSettings, SETTINGS_ID)
    if settings is None:
        settings = AppSettings(id=SETTINGS_ID, alias="")
        settings.imported_pack_ids = []
        db.add(settings)
        db.flush()
    return settings


def set_alias(db: DbSession, alias: str) -> AppSettings:
    """Set the author alias used for new questions and pack exports."""
    settings = get_settings(db)
    settings.alias = alias.strip()
    db.commit()
    return settings


def is_pack_imported(db: DbSession, pack_id: str) -> bool:
    """Check whether a contribution pack id was imported before."""
    return pack_id in get_settings(db).imported_pack_ids


def mark_pack_imported(db: DbSession, pack_id: str) -> None:
    """Remember a contribution pack id (caller commits)."""
    settings = get_settings(db)
    pack_ids = settings.imported_pack_ids
    if pack_id not in pack_ids:
        settings.imported_pack_ids = [*pack_ids, pack_id]


def mark_global_bank_synced(db: DbSession, synced_at: str) -> None:
    """Record the last global bank merge time (caller commits)."""
    get_settings(db).global_bank_synced_at = synced_at
