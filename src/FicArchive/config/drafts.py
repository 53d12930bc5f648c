"""Draft retention configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from FicArchive.config.common import check_positive, expect_int, get_section


@dataclass(frozen=True, slots=True)
class DraftConfig:
    expiry_months: int


def load_drafts(raw: Mapping[str, Any]) -> DraftConfig:
    section = get_section(raw, "drafts", required=False)
    return DraftConfig(expiry_months=expect_int(section.get("expiry_months", 1), "drafts.expiry_months"))


def check_drafts(config: DraftConfig) -> None:
    check_positive(config.expiry_months, "drafts.expiry_months")
