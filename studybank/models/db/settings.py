"""
AppSettings model: single-row local preferences and import history.
"""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from studybank.database import Base
from studybank.utils import dump_json_column, load_json_column

SETTINGS_ID = "global"


class AppSettings(Base):
    """Local settings (alias, imported pack ids, global bank sync time)."""

    __tablename__ = "app_settings"

    id: Mapped[str] = mapped_column(String(16), primary_key=True, default=SETTINGS_ID)
    alias: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    imported_pack_ids_json: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    global_bank_synced_at: Mapped[str | None] = mapped_column(String(40), nullable=True)

    @property
    def imported_pack_ids(self) -> list[str]:
        """Parse imported contribution pack ids from JSON."""
        return load_json_column(self.imported_pack_ids_json, [])

    @imported_pack_ids.setter
    def imported_pack_ids(self, value: list[str]) -> None:
        self.imported_pack_ids_json = dump_json_column(list(value or []))
