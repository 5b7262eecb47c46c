"""Test source capabilities, labels and titles"""

import pytest

from console_core.core.source_registry import (
    can_configure_source,
    can_delete_source,
    can_sync_source,
    generate_unique_name,
    get_file_title,
    get_icon_for_source,
    get_label_for_source,
    registry,
    undeletable_file_ids,
)
from console_core.data.models import SourceType
from conftest import make_file, make_source


class TestCapabilities:

    def test_only_uploads_can_be_bulk_deleted(self):
        deletable = {t for t in SourceType if can_delete_source(t.value)}
        assert deletable == {SourceType.FILE_UPLOAD, SourceType.API_UPLOAD}

    def test_only_connectors_configure_and_sync(self):
        assert can_configure_source(SourceType.NANGO.value) is True
        assert can_sync_source(SourceType.NANGO.value) is True
        assert can_configure_source(SourceType.WEBSITE.value) is False
        assert can_sync_source(SourceType.GITHUB.value) is False

    def test_undeletable_files(self):
        sources = [make_source("s-up"), make_source("s-ng", SourceType.NANGO)]
        files = [make_file("f1", "s-up"), make_file("f2", "s-ng"), make_file("f3", "s-gone")]
        assert undeletable_file_ids(files, sources) == ["f2", "f3"]

    def test_unknown_type(self):
        assert can_delete_source("carrier-pigeon") is False
        with pytest.raises(ValueError):
            registry.get("carrier-pigeon")


class TestLabels:

    def test_connector_label_and_icon(self):
        source = make_source("s", SourceType.NANGO, integration_id="salesforce-knowledge", name="Support KB")
        assert get_label_for_source(source, False) == "Support KB"
        assert get_icon_for_source(source) == "salesforce"

    def test_connector_label_falls_back_to_integration_name(self):
        source = make_source("s", SourceType.NANGO, integration_id="salesforce-knowledge-sandbox")
        assert get_label_for_source(source, False) == "Salesforce Knowledge Sandbox"

    def test_github_short_label(self):
        source = make_source("s", SourceType.GITHUB, url="https://github.com/acme/docs")
        assert get_label_for_source(source, True) == "acme/docs"
        assert get_label_for_source(source, False) == "https://github.com/acme/docs"

    def test_website_short_label(self):
        source = make_source("s", SourceType.WEBSITE, url="https://docs.acme.com/en")
        assert get_label_for_source(source, True) == "docs.acme.com"

    def test_upload_label(self):
        assert get_label_for_source(make_source("s", SourceType.API_UPLOAD), False) == "API uploads"


class TestFileTitle:

    def test_meta_title_wins(self):
        file = make_file("f", "s", title="  Install guide ")
        assert get_file_title(file, []) == "Install guide"

    def test_non_string_title_falls_back_to_path(self):
        file = make_file("f", "s", path="/guides/install.mdx", title=42)
        assert get_file_title(file, [make_source("s")]) == "install"

    def test_website_uses_full_path(self):
        source = make_source("s", SourceType.WEBSITE, url="https://acme.com")
        file = make_file("f", "s", path="https://acme.com/pricing")
        assert get_file_title(file, [source]) == "https://acme.com/pricing"


class TestUniqueName:

    def test_free_name(self):
        assert generate_unique_name("salesforce-knowledge", []) == "Salesforce Knowledge"

    def test_suffix_on_collision(self):
        taken = ["Salesforce Knowledge", "Salesforce Knowledge (1)", "Salesforce Knowledge (3)"]
        assert generate_unique_name("salesforce-knowledge", taken) == "Salesforce Knowledge (2)"
