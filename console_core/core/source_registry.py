"""
Capability registry for source types.

Per-type behaviour (icon, label, whether files can be bulk deleted,
whether the source can be configured or synced) is resolved through
lookups keyed on the source type tag rather than through subclasses.
"""

import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

from ..data.models import FileRecord, Source, SourceType


@dataclass(frozen=True)
class SourceCapabilities:
    icon: str
    label: str
    can_delete: bool = False
    can_configure: bool = False
    can_sync: bool = False


class SourceRegistry:
    """Maps source types to their capability descriptors."""

    def __init__(self):
        self.capabilities: Dict[str, SourceCapabilities] = {
            SourceType.NANGO.value: SourceCapabilities(
                icon="plug", label="Connector", can_configure=True, can_sync=True
            ),
            SourceType.GITHUB.value: SourceCapabilities(icon="github", label="GitHub"),
            SourceType.MOTIF.value: SourceCapabilities(icon="motif", label="Motif"),
            SourceType.WEBSITE.value: SourceCapabilities(icon="globe", label="Website"),
            SourceType.FILE_UPLOAD.value: SourceCapabilities(
                icon="upload", label="File uploads", can_delete=True
            ),
            SourceType.API_UPLOAD.value: SourceCapabilities(
                icon="code", label="API uploads", can_delete=True
            ),
        }

    def get(self, source_type: str) -> SourceCapabilities:
        if source_type not in self.capabilities:
            raise ValueError(f"Unknown source type: {source_type}")
        return self.capabilities[source_type]


registry = SourceRegistry()


class NangoIntegrationId(str, Enum):
    SALESFORCE_KNOWLEDGE = "salesforce-knowledge"
    SALESFORCE_KNOWLEDGE_SANDBOX = "salesforce-knowledge-sandbox"
    SALESFORCE_CASE = "salesforce-case"
    SALESFORCE_CASE_SANDBOX = "salesforce-case-sandbox"
    NOTION_PAGES = "notion-pages"
    WEBSITE_PAGES = "website-pages"
    GITHUB_REPO = "github-repo"


INTEGRATION_NAMES = {
    NangoIntegrationId.SALESFORCE_KNOWLEDGE.value: "Salesforce Knowledge",
    NangoIntegrationId.SALESFORCE_KNOWLEDGE_SANDBOX.value: "Salesforce Knowledge Sandbox",
    NangoIntegrationId.SALESFORCE_CASE.value: "Salesforce Case",
    NangoIntegrationId.SALESFORCE_CASE_SANDBOX.value: "Salesforce Case Sandbox",
    NangoIntegrationId.NOTION_PAGES.value: "Notion",
    NangoIntegrationId.WEBSITE_PAGES.value: "Website",
    NangoIntegrationId.GITHUB_REPO.value: "GitHub",
}

INTEGRATION_ICONS = {
    NangoIntegrationId.SALESFORCE_KNOWLEDGE.value: "salesforce",
    NangoIntegrationId.SALESFORCE_KNOWLEDGE_SANDBOX.value: "salesforce",
    NangoIntegrationId.SALESFORCE_CASE.value: "salesforce",
    NangoIntegrationId.SALESFORCE_CASE_SANDBOX.value: "salesforce",
    NangoIntegrationId.NOTION_PAGES.value: "notion",
    NangoIntegrationId.WEBSITE_PAGES.value: "globe",
    NangoIntegrationId.GITHUB_REPO.value: "github",
}


class SalesforceEnvironment(str, Enum):
    PRODUCTION = "production"
    SANDBOX = "sandbox"


def get_knowledge_integration_id(environment: SalesforceEnvironment) -> str:
    if SalesforceEnvironment(environment) == SalesforceEnvironment.SANDBOX:
        return NangoIntegrationId.SALESFORCE_KNOWLEDGE_SANDBOX.value
    return NangoIntegrationId.SALESFORCE_KNOWLEDGE.value


def get_integration_name(integration_id: str) -> str:
    return INTEGRATION_NAMES.get(integration_id, integration_id)


def can_delete_source(source_type: str) -> bool:
    capabilities = registry.capabilities.get(source_type)
    return bool(capabilities and capabilities.can_delete)


def undeletable_file_ids(files: Iterable[FileRecord], sources: Iterable[Source]) -> List[str]:
    """Ids of files whose source is missing or does not allow bulk delete."""
    by_id = {s.id: s for s in sources}
    return [
        f.id for f in files
        if f.source_id not in by_id or not can_delete_source(by_id[f.source_id].type)
    ]


def can_configure_source(source_type: str) -> bool:
    capabilities = registry.capabilities.get(source_type)
    return bool(capabilities and capabilities.can_configure)


def can_sync_source(source_type: str) -> bool:
    capabilities = registry.capabilities.get(source_type)
    return bool(capabilities and capabilities.can_sync)


def get_icon_for_source(source: Source) -> str:
    if source.type == SourceType.NANGO.value:
        integration_id = source.data.get("integration_id")
        return INTEGRATION_ICONS.get(integration_id, registry.get(source.type).icon)
    return registry.get(source.type).icon


def _host(url: str) -> str:
    return urlparse(url).hostname or url


def get_label_for_source(source: Source, short: bool) -> str:
    data = source.data or {}

    if source.type == SourceType.NANGO.value:
        name = data.get("name")
        if name:
            return name
        return get_integration_name(data.get("integration_id", ""))

    if source.type == SourceType.GITHUB.value:
        url = data.get("url", "")
        if short:
            parts = [p for p in urlparse(url).path.split("/") if p]
            if len(parts) >= 2:
                return f"{parts[0]}/{parts[1]}"
        return url or registry.get(source.type).label

    if source.type in (SourceType.WEBSITE.value, SourceType.MOTIF.value):
        url = data.get("url") or data.get("projectDomain", "")
        if not url:
            return registry.get(source.type).label
        return _host(url) if short else url

    return registry.get(source.type).label


def get_file_title(file: FileRecord, sources: Iterable[Source]) -> str:
    """
    Title of a file for display.

    Older records were indexed before titles were extracted into the meta,
    and the title may also be a non-string value, so fall back to a name
    derived from the path.
    """
    title = (file.meta or {}).get("title")
    if isinstance(title, str) and title.strip():
        return title.strip()

    source = find_source(sources, file.source_id)
    if source and source.type in (SourceType.WEBSITE.value, SourceType.MOTIF.value):
        return file.path

    name = posixpath.basename(file.path.rstrip("/")) or file.path
    stem, _ = posixpath.splitext(name)
    return stem or name


def find_source(sources: Iterable[Source], source_id: Optional[str]) -> Optional[Source]:
    return next((s for s in sources if s.id == source_id), None)


def generate_unique_name(integration_id: str, existing_names: Iterable[str]) -> str:
    """Display name for a new source, suffixed with ' (n)' on collision."""
    taken = set(existing_names)
    base = get_integration_name(integration_id)
    if base not in taken:
        return base

    n = 1
    while f"{base} ({n})" in taken:
        n += 1
    return f"{base} ({n})"


def source_names(sources: Iterable[Source]) -> List[str]:
    return [get_label_for_source(s, False) for s in sources]
