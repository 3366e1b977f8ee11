"""Todoist-side data models.

Optional remote attributes (section, parent, due) are ``None`` here. They only
become empty strings when written into front matter, see
``models.task.remote_frontmatter_fields``.
"""

from pydantic import BaseModel, Field


class RemoteDue(BaseModel):
    """Due information attached to a Todoist item."""

    date: str | None = None
    string: str | None = None
    is_recurring: bool | None = None
    datetime: str | None = None
    timezone: str | None = None
    lang: str | None = None


class RemoteTask(BaseModel):
    """A Todoist item as returned by the sync endpoint."""

    id: str
    content: str
    description: str | None = None
    project_id: str
    section_id: str | None = None
    parent_id: str | None = None
    priority: int | None = None
    due: RemoteDue | None = None
    labels: list[str] = Field(default_factory=list)
    checked: bool = False
    is_deleted: bool = False
    responsible_uid: str | None = None

    @property
    def due_date(self) -> str | None:
        return self.due.date if self.due else None

    @property
    def due_string(self) -> str | None:
        return self.due.string if self.due else None

    @property
    def is_recurring(self) -> bool:
        return bool(self.due and self.due.is_recurring)


class RemoteProject(BaseModel):
    """A Todoist project."""

    id: str
    name: str


class RemoteSection(BaseModel):
    """A Todoist section, scoped to a project."""

    id: str
    name: str
    project_id: str


class ProjectSectionLookup(BaseModel):
    """Projects and sections, used for name <-> id resolution."""

    projects: list[RemoteProject] = Field(default_factory=list)
    sections: list[RemoteSection] = Field(default_factory=list)

    def project_name_by_id(self) -> dict[str, str]:
        return {project.id: project.name for project in self.projects}

    def section_name_by_id(self) -> dict[str, str]:
        return {section.id: section.name for section in self.sections}

    def resolve_project_id(self, project_id: str | None, project_name: str | None) -> str | None:
        """Resolve a project, preferring an explicit id over a name.

        Name lookup is case-insensitive. Unknown names resolve to None.
        """
        if project_id and project_id.strip():
            return project_id.strip()
        if not project_name or not project_name.strip():
            return None
        wanted = project_name.strip().lower()
        for project in self.projects:
            if project.name.lower() == wanted:
                return project.id
        return None

    def resolve_section_id(
        self,
        section_id: str | None,
        section_name: str | None,
        project_id: str | None,
    ) -> str | None:
        """Resolve a section within ``project_id``, preferring an explicit id."""
        if section_id and section_id.strip():
            return section_id.strip()
        if not section_name or not section_name.strip() or not project_id:
            return None
        wanted = section_name.strip().lower()
        for section in self.sections:
            if section.project_id == project_id and section.name.lower() == wanted:
                return section.id
        return None


class SyncSnapshot(ProjectSectionLookup):
    """Full account snapshot: current user, items, projects, sections."""

    user_id: str | None = None
    items: list[RemoteTask] = Field(default_factory=list)

    def active_items_by_id(self) -> dict[str, RemoteTask]:
        """Items that still exist remotely (deleted items excluded)."""
        return {item.id: item for item in self.items if not item.is_deleted}


class CreateTaskInput(BaseModel):
    """Arguments for an ``item_add`` command."""

    content: str
    description: str | None = None
    project_id: str | None = None
    section_id: str | None = None
    parent_id: str | None = None
    priority: int | None = None
    labels: list[str] = Field(default_factory=list)
    due_date: str | None = None
    due_string: str | None = None


class UpdateTaskInput(BaseModel):
    """Arguments for an ``item_update`` plus completion toggle."""

    id: str
    content: str
    description: str | None = None
    is_done: bool = False
    is_recurring: bool = False
    project_id: str | None = None
    section_id: str | None = None
    due_date: str | None = None
    due_string: str | None = None
    clear_due: bool = False
