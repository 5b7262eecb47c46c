from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from ..data.models import Source, StepState


class ConnectorClient(ABC):
    """Provisions a source together with its external connection."""

    @abstractmethod
    async def create_connection(
        self,
        project_id: str,
        integration_id: str,
        name: str,
        params: Dict[str, Any],
    ) -> Source:
        """
        Create a source and authorize its connection.

        Raises ConnectorCallbackError when the user abandons the
        authorization and ConnectorError for any other failure. No source
        is left behind when this raises.
        """
        pass


class SettingsEditor(ABC):
    """Reads and writes the configuration payload of one source type."""

    @abstractmethod
    async def edit(
        self,
        project_id: str,
        source: Optional[Source],
        force_disabled: bool,
        on_did_complete_or_skip: Callable[[], None],
    ):
        """Run the editor; on_did_complete_or_skip is invoked exactly once on save or skip."""
        pass


class SyncRunner(ABC):
    """Enqueues the first sync of a source and follows it to the end."""

    @abstractmethod
    async def run(self, source: Source, state: StepState, on_complete: Callable[[], None]):
        """Run the sync; on_complete is invoked exactly once when it finishes."""
        pass
