"""Tests for LookupService."""

from unittest.mock import MagicMock

from todoist_notes.models import ProjectSectionLookup, RemoteProject, RemoteSection
from todoist_notes.services import LookupService
from todoist_notes.todoist.client import TodoistAuthError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def make_client(lookup: ProjectSectionLookup) -> MagicMock:
    client = MagicMock()
    client.__enter__.return_value = client
    client.fetch_project_section_lookup.return_value = lookup
    return client


LOOKUP = ProjectSectionLookup(
    projects=[RemoteProject(id="p1", name="Home")],
    sections=[RemoteSection(id="s1", name="Bills", project_id="p1")],
)


class TestLookupService:
    """Tests for the cached project/section lookup."""

    def test_fetches_and_caches(self):
        """The lookup is fetched once and then served from cache."""
        client = make_client(LOOKUP)
        factory = MagicMock(return_value=client)
        clock = FakeClock()
        service = LookupService("TOKEN", client_factory=factory, clock=clock)

        assert service.get_lookup() == LOOKUP
        clock.now += 299
        assert service.get_lookup() == LOOKUP

        factory.assert_called_once_with("TOKEN")
        assert client.fetch_project_section_lookup.call_count == 1

    def test_expires_after_ttl(self):
        """The cache is refetched after five minutes."""
        client = make_client(LOOKUP)
        clock = FakeClock()
        service = LookupService(client_factory=MagicMock(return_value=client), clock=clock)

        service.get_lookup()
        clock.now += 301
        service.get_lookup()

        assert client.fetch_project_section_lookup.call_count == 2

    def test_force_refresh(self):
        """force_refresh bypasses the cache."""
        client = make_client(LOOKUP)
        service = LookupService(client_factory=MagicMock(return_value=client), clock=FakeClock())

        service.get_lookup()
        service.get_lookup(force_refresh=True)

        assert client.fetch_project_section_lookup.call_count == 2

    def test_invalidate(self):
        """invalidate drops the cached lookup."""
        client = make_client(LOOKUP)
        service = LookupService(client_factory=MagicMock(return_value=client), clock=FakeClock())

        service.get_lookup()
        service.invalidate()
        service.get_lookup()

        assert client.fetch_project_section_lookup.call_count == 2

    def test_no_token_returns_empty_lookup(self):
        """Without a token the lookup is empty."""
        factory = MagicMock(side_effect=TodoistAuthError("No todoist API token is configured."))
        service = LookupService(client_factory=factory)

        lookup = service.get_lookup()

        assert lookup.projects == []
        assert lookup.sections == []
