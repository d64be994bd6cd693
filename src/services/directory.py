"""Read-only lookups for reference data owned by the admin screens."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from utils.logging_config import get_logger

logger = get_logger(__name__)


class Team(BaseModel):
    id: str
    name: str
    is_active: bool = True
    recipients: List[str] = Field(default_factory=list)


class DirectoryData(BaseModel):
    teams: List[Team] = Field(default_factory=list)
    staff: Dict[str, str] = Field(default_factory=dict)
    categories: Dict[str, str] = Field(default_factory=dict)


class Directory:
    """Interface; every lookup tolerates unknown or missing ids."""

    def has_team(self, team_id: str) -> bool:
        raise NotImplementedError

    def has_staff(self, staff_id: str) -> bool:
        raise NotImplementedError

    def team_name(self, team_id: Optional[str]) -> Optional[str]:
        raise NotImplementedError

    def is_team_active(self, team_id: Optional[str]) -> bool:
        raise NotImplementedError

    def team_recipients(self, team_id: Optional[str]) -> List[str]:
        raise NotImplementedError

    def staff_name(self, staff_id: Optional[str]) -> Optional[str]:
        raise NotImplementedError

    def category_name(self, category_id: Optional[str]) -> Optional[str]:
        raise NotImplementedError


class StaticDirectory(Directory):
    def __init__(self, data: Optional[DirectoryData] = None):
        self.data = data or DirectoryData()
        self._teams = {team.id: team for team in self.data.teams}

    @classmethod
    def from_file(cls, path: str) -> "StaticDirectory":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        directory = cls(DirectoryData.model_validate(raw))
        logger.info(
            "Directory loaded",
            extra={"path": path, "teams": len(directory._teams), "staff": len(directory.data.staff)},
        )
        return directory

    @classmethod
    def from_settings(cls, settings) -> "StaticDirectory":
        if settings.directory_file:
            return cls.from_file(settings.directory_file)
        logger.warning("No directory file configured; team lookups will be empty")
        return cls()

    def has_team(self, team_id):
        return team_id in self._teams

    def has_staff(self, staff_id):
        return staff_id in self.data.staff

    def team_name(self, team_id):
        team = self._teams.get(team_id) if team_id else None
        return team.name if team else None

    def is_team_active(self, team_id):
        # Teams absent from the directory are treated as active.
        team = self._teams.get(team_id) if team_id else None
        return team.is_active if team else bool(team_id)

    def team_recipients(self, team_id):
        team = self._teams.get(team_id) if team_id else None
        return list(team.recipients) if team else []

    def staff_name(self, staff_id):
        return self.data.staff.get(staff_id) if staff_id else None

    def category_name(self, category_id):
        return self.data.categories.get(category_id) if category_id else None
