"""Animation projects persisted as ``.vid`` JSON files in a directory."""

import json
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .errors import ProjectFormatError
from .joints import humanoid_figure
from .models import FigureFrame, frames_from_list, frames_to_list

FILE_EXTENSION = ".vid"


@dataclass
class Project:
    id: str
    name: str
    frames: list[FigureFrame]

    @classmethod
    def new(cls, name: str) -> "Project":
        """A fresh project with a single keyframe holding one humanoid figure."""
        return cls(id=str(uuid.uuid4()), name=name, frames=[FigureFrame(figures=[humanoid_figure()])])

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "frames": frames_to_list(self.frames)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        try:
            return cls(id=str(data["id"]), name=str(data["name"]), frames=frames_from_list(data["frames"]))
        except (KeyError, TypeError) as e:
            raise ProjectFormatError(f"Malformed project: {e}") from e


@dataclass(frozen=True)
class ProjectInfo:
    id: str
    name: str


class ProjectStore:
    """Reads and writes projects under ``root``, one file per project id."""

    def __init__(self, root: str = "projects"):
        self.root = Path(root)

    def _path(self, project_id: str) -> Path:
        return self.root / f"{project_id}{FILE_EXTENSION}"

    def _read(self, path: Path) -> Project:
        return Project.from_dict(json.loads(path.read_text()))

    def list_projects(self) -> list[ProjectInfo]:
        """All readable projects sorted by name; unreadable files are reported and skipped."""
        if not self.root.exists():
            return []
        infos = []
        for path in sorted(self.root.glob(f"*{FILE_EXTENSION}")):
            try:
                project = self._read(path)
            except (OSError, ValueError) as e:
                print(f"[project] Failed to read project {path.name}: {e}")
                continue
            infos.append(ProjectInfo(project.id, project.name))
        return sorted(infos, key=lambda info: info.name)

    def load(self, project_id: str) -> Optional[Project]:
        path = self._path(project_id)
        if not path.exists():
            print(f"[project] Project file not found: {project_id}")
            return None
        try:
            return self._read(path)
        except (OSError, ValueError) as e:
            print(f"[project] Failed to load project {project_id}: {e}")
            return None

    def save(self, project: Project) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self._path(project.id).write_text(json.dumps(project.to_dict(), indent=2))
        print(f"[project] Saved project: {project.name}")

    def create(self, name: str) -> Project:
        project = Project.new(name)
        self.save(project)
        return project

    def save_frames(self, project_id: str, frames: list[FigureFrame]) -> bool:
        """Replace a stored project's keyframes with copies of ``frames``."""
        project = self.load(project_id)
        if project is None:
            return False
        project.frames = [frame.deep_copy() for frame in frames]
        self.save(project)
        return True

    def rename(self, project_id: str, new_name: str) -> bool:
        project = self.load(project_id)
        if project is None:
            return False
        project.name = new_name
        self.save(project)
        return True

    def delete(self, project_id: str) -> bool:
        path = self._path(project_id)
        if not path.exists():
            return False
        path.unlink()
        print(f"[project] Deleted project: {project_id}")
        return True
