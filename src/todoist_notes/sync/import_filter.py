"""Import rules: which Todoist items get materialized as notes."""

from ..models import ImportProjectScope, RemoteProject, RemoteTask, SyncConfig


def filter_importable_items(
    items: list[RemoteTask],
    projects: list[RemoteProject],
    config: SyncConfig,
    user_id: str | None,
) -> list[RemoteTask]:
    """Return the items that pass every import rule, in input order.

    Rules (all must pass):
    - not deleted
    - assigned-to-me: when enabled and both the user id and the assignee are
      known, they must match
    - allow-list scope: the project name must match an allowed name
      (case-insensitive); an empty allow-list admits every project
    - required label: must be among the item's labels (case-insensitive)
    """
    if not config.auto_import_enabled:
        return []

    project_name_by_id = {project.id: project.name for project in projects}
    allowed_names = config.allowed_project_names
    required_label = config.auto_import_required_label.strip().lower()
    use_allow_list = (
        config.auto_import_project_scope == ImportProjectScope.ALLOW_LIST_BY_NAME
        and bool(allowed_names)
    )

    def is_importable(item: RemoteTask) -> bool:
        if item.is_deleted:
            return False

        if (
            config.auto_import_assigned_to_me_only
            and user_id
            and item.responsible_uid
            and item.responsible_uid != user_id
        ):
            return False

        if use_allow_list:
            project_name = project_name_by_id.get(item.project_id)
            if not project_name or project_name.lower() not in allowed_names:
                return False

        if required_label:
            labels = {label.lower() for label in item.labels}
            if required_label not in labels:
                return False

        return True

    return [item for item in items if is_importable(item)]


def include_ancestor_tasks(
    base_items: list[RemoteTask],
    all_items: list[RemoteTask],
) -> list[RemoteTask]:
    """Add every ancestor of ``base_items``, whether or not it is importable.

    Walks ``parent_id`` pointers; stops on unknown or deleted parents and on
    cycles.
    """
    all_by_id = {item.id: item for item in all_items}
    selected = {item.id: item for item in base_items}

    for item in base_items:
        parent_id = item.parent_id
        seen: set[str] = set()
        while parent_id and parent_id not in seen:
            seen.add(parent_id)
            parent = all_by_id.get(parent_id)
            if parent is None or parent.is_deleted:
                break
            selected.setdefault(parent.id, parent)
            parent_id = parent.parent_id

    return list(selected.values())
