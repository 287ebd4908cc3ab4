import pytest

from linker_app.errors import DuplicateNameError, InvalidNameError, InvalidURLError
from linker_app.services.link_service import format_links


class TestLinkService:
    """Test the administrative add, delete and list operations"""

    def test_add_and_list(self, link_service):
        entry = link_service.add("docs", "https://example.com/docs")
        assert entry.name == "docs"
        assert entry.url == "https://example.com/docs"

        entries = link_service.list()
        assert [(e.name, e.url) for e in entries] == [("docs", "https://example.com/docs")]

    def test_add_defaults_scheme(self, link_service):
        entry = link_service.add("gh", " github.com/someone ")
        assert entry.url == "https://github.com/someone"

    @pytest.mark.parametrize("name", ["", "bad name", "a_b", "x?", "ünï"])
    def test_invalid_name_mutates_nothing(self, link_service, name):
        with pytest.raises(InvalidNameError):
            link_service.add(name, "https://example.com")
        with pytest.raises(InvalidNameError):
            link_service.delete(name)
        assert link_service.list() == []

    def test_invalid_url(self, link_service):
        with pytest.raises(InvalidURLError):
            link_service.add("docs", "   ")
        assert link_service.list() == []

    def test_duplicate_name(self, link_service):
        link_service.add("docs", "https://example.com/docs")
        with pytest.raises(DuplicateNameError) as excinfo:
            link_service.add("docs", "https://example.com/other")
        assert excinfo.value.__cause__ is not None
        assert link_service.list()[0].url == "https://example.com/docs"

    def test_delete(self, link_service):
        link_service.add("docs", "https://example.com/docs")
        assert link_service.delete("docs") is True
        assert link_service.list() == []

    def test_delete_missing_is_not_an_error(self, link_service):
        assert link_service.delete("missing") is False

    def test_list_is_ordered_by_name(self, link_service):
        for name in ["zeta", "alpha", "Mid"]:
            link_service.add(name, f"https://example.com/{name}")
        assert [e.name for e in link_service.list()] == ["Mid", "alpha", "zeta"]

    def test_format_links(self, link_service):
        link_service.add("docs", "https://example.com/docs")
        table = format_links(link_service.list())
        lines = table.splitlines()
        assert lines[0] == "Name           URL"
        assert lines[1] == "=" * 46
        assert lines[2] == "docs           https://example.com/docs"
