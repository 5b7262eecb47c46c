import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..abstractions.connector import SettingsEditor
from ..data.models import Source
from ..data.repository import Repository

logger = logging.getLogger(__name__)

SYNC_METADATA_KEY = "sync_metadata"


@dataclass
class FieldMappings:
    title: str = "Title"
    content: str = "Summary"
    path: str = "UrlName"


@dataclass
class SalesforceKnowledgeMetadata:
    """What to index: a SOQL filter on articles plus the fields to read."""
    filters: str = ""
    mappings: FieldMappings = field(default_factory=FieldMappings)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SalesforceKnowledgeMetadata":
        data = data or {}
        mappings = data.get("mappings") or {}
        defaults = FieldMappings()
        return cls(
            filters=data.get("filters") or "",
            mappings=FieldMappings(
                title=mappings.get("title") or defaults.title,
                content=mappings.get("content") or defaults.content,
                path=mappings.get("path") or defaults.path,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Receives the current metadata, returns the edited one or None to skip
MetadataPrompt = Callable[
    [SalesforceKnowledgeMetadata],
    Union[Optional[SalesforceKnowledgeMetadata], Awaitable[Optional[SalesforceKnowledgeMetadata]]],
]


class SalesforceKnowledgeSettings(SettingsEditor):
    def __init__(self, repository: Repository, connector_api=None, prompt: Optional[MetadataPrompt] = None):
        self.repository = repository
        self.connector_api = connector_api
        self.prompt = prompt

    async def _ask(self, current: SalesforceKnowledgeMetadata) -> Optional[SalesforceKnowledgeMetadata]:
        if self.prompt is None:
            return current
        result = self.prompt(current)
        if asyncio.iscoroutine(result):
            result = await result
        return result

    async def save(self, source: Source, metadata: SalesforceKnowledgeMetadata) -> Source:
        data = dict(source.data)
        data[SYNC_METADATA_KEY] = metadata.to_dict()
        updated = await self.repository.update_source_data(source.id, data)

        if self.connector_api and "connection_id" in data:
            await self.connector_api.set_metadata(
                data["integration_id"],
                data["connection_id"],
                metadata.to_dict(),
            )
        logger.info(f"Saved sync metadata for source {source.id}")
        return updated

    async def edit(
        self,
        project_id: str,
        source: Optional[Source],
        force_disabled: bool,
        on_did_complete_or_skip: Callable[[], None],
    ):
        if force_disabled or source is None:
            logger.debug("Settings editor is disabled")
            return

        current = SalesforceKnowledgeMetadata.from_dict(source.data.get(SYNC_METADATA_KEY))
        edited = await self._ask(current)
        if edited is None:
            logger.info(f"Skipped configuration of source {source.id}")
        else:
            await self.save(source, edited)

        on_did_complete_or_skip()
