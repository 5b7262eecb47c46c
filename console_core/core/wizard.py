"""
Onboarding wizard for connector-backed sources.

A linear Connect -> Configure -> Sync flow. The wizard only stores two
primitives, the created source and whether configuration was completed;
every step state is derived from them on demand so the state machine has
a single source of truth.

    no source              connect=in_progress  configure=not_started  sync=not_started
    source, !configured    connect=complete     configure=in_progress  sync=not_started
    source, configured     connect=complete     configure=complete     sync=in_progress

Closing the wizard from any state resets it, so reopening always starts
at Connect.
"""

import logging
from typing import Callable, Dict, Optional

from ..abstractions.connector import ConnectorClient, SettingsEditor, SyncRunner
from ..abstractions.providers import Notifier, SourcesProvider
from ..data.models import Source, StepState, StepStates, WizardState
from ..data.validators import validate_instance_url
from .errors import ConnectorCallbackError
from .source_registry import SalesforceEnvironment, get_knowledge_integration_id

logger = logging.getLogger(__name__)


def derive_step_states(has_source: bool, is_configured: bool, is_syncing: bool = False) -> StepStates:
    """
    Derive the state of every wizard step.

    is_syncing does not influence the result: the Sync step has no
    reachable complete state and finishes through its own completion
    callback, which resets the wizard.
    """
    connect = StepState.COMPLETE if has_source else StepState.IN_PROGRESS

    if not has_source:
        configure = StepState.NOT_STARTED
    elif is_configured:
        configure = StepState.COMPLETE
    else:
        configure = StepState.IN_PROGRESS

    if has_source and is_configured:
        sync = StepState.IN_PROGRESS
    else:
        sync = StepState.NOT_STARTED

    return StepStates(connect=connect, configure=configure, sync=sync)


class ConnectStep:
    """Authorize a Salesforce environment and create the source."""

    title = "Authorize"
    description = "Sign in to your Salesforce environment."

    def __init__(
        self,
        project_id: str,
        connector: ConnectorClient,
        sources: SourcesProvider,
        notifier: Notifier,
        on_did_connect: Callable[[Source], None],
    ):
        self.project_id = project_id
        self.connector = connector
        self.sources = sources
        self.notifier = notifier
        self.on_did_connect = on_did_connect
        self.environment = SalesforceEnvironment.PRODUCTION
        self.instance_url = ""
        self.errors: Dict[str, str] = {}
        self.is_submitting = False

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def validate(self, instance_url: str) -> Dict[str, str]:
        """Change-time validation; an empty URL is not reported yet."""
        self.instance_url = instance_url
        self.errors = validate_instance_url(instance_url).as_dict()
        return self.errors

    @staticmethod
    def is_editing(state: StepState) -> bool:
        return state not in (StepState.NOT_STARTED, StepState.COMPLETE)

    def inputs_disabled(self, state: StepState) -> bool:
        return self.is_submitting or not self.is_editing(state)

    def submit_disabled(self, state: StepState) -> bool:
        return not self.is_valid or not self.is_editing(state)

    @staticmethod
    def button_label(state: StepState) -> str:
        return "Authorized" if state == StepState.COMPLETE else "Authorize Salesforce"

    async def submit(self, environment: SalesforceEnvironment, instance_url: str) -> Optional[Source]:
        """Validate again and connect. Returns the new source, or None."""
        if self.is_submitting:
            logger.debug("Ignoring connect request while another one is in flight")
            return None

        self.environment = SalesforceEnvironment(environment)
        self.instance_url = instance_url
        self.errors = validate_instance_url(instance_url, required=True).as_dict()
        if self.errors:
            return None

        self.is_submitting = True
        try:
            return await self._connect(self.environment, instance_url)
        finally:
            self.is_submitting = False

    async def _connect(self, environment: SalesforceEnvironment, instance_url: str) -> Optional[Source]:
        try:
            integration_id = get_knowledge_integration_id(environment)
            name = self.sources.generate_unique_name(integration_id)
            new_source = await self.connector.create_connection(
                self.project_id,
                integration_id,
                name,
                {"instance_url": instance_url},
            )
            if not new_source:
                self.notifier.error("Error connecting to Salesforce")
                return None

            await self.sources.mutate()
            self.on_did_connect(new_source)
            self.notifier.success("Connected to Salesforce")
            return new_source
        except ConnectorCallbackError:
            # The user closed or canceled the authorization flow
            self.notifier.info("Connection canceled")
            return None
        except Exception as e:
            logger.warning(f"Salesforce connection failed: {e}", exc_info=True)
            self.notifier.error("Error connecting to Salesforce")
            return None


class ConfigureStep:
    title = "Configure"
    description = "Configure the source. You can always change the configuration later."

    def __init__(
        self,
        project_id: str,
        editor: SettingsEditor,
        notifier: Notifier,
        on_completed_or_skipped: Callable[[], None],
    ):
        self.project_id = project_id
        self.editor = editor
        self.notifier = notifier
        self.on_completed_or_skipped = on_completed_or_skipped
        self.is_saving = False

    async def run(self, source: Optional[Source], state: StepState):
        self.is_saving = True
        try:
            await self.editor.edit(
                self.project_id,
                source,
                force_disabled=state == StepState.NOT_STARTED,
                on_did_complete_or_skip=self.on_completed_or_skipped,
            )
        except Exception as e:
            logger.warning(f"Saving the source configuration failed: {e}", exc_info=True)
            self.notifier.error("Error saving configuration")
        finally:
            self.is_saving = False


class SyncStep:
    title = "Sync"
    description = "Sync the source for the first time."

    def __init__(self, runner: SyncRunner, notifier: Notifier, on_complete: Callable[[], None]):
        self.runner = runner
        self.notifier = notifier
        self.on_complete = on_complete
        self.is_syncing = False

    async def run(self, source: Optional[Source], state: StepState):
        if source is None or state != StepState.IN_PROGRESS:
            return
        self.is_syncing = True
        try:
            await self.runner.run(source, state, self.on_complete)
        except Exception as e:
            logger.warning(f"First sync of source {source.id} failed: {e}", exc_info=True)
            self.notifier.error("Error syncing source")
        finally:
            self.is_syncing = False


class OnboardingWizard:
    """Hosts the three steps of the Salesforce Knowledge onboarding."""

    title = "Connect Salesforce Knowledge"
    description = "Specify the Knowledge articles to index."

    def __init__(
        self,
        project_id: str,
        connector: ConnectorClient,
        sources: SourcesProvider,
        settings_editor: SettingsEditor,
        sync_runner: SyncRunner,
        notifier: Notifier,
        on_open_change: Optional[Callable[[bool], None]] = None,
    ):
        self.project_id = project_id
        self.on_open_change = on_open_change
        self.state = WizardState()
        self.open = False

        self.connect_step = ConnectStep(project_id, connector, sources, notifier, self._on_did_connect)
        self.configure_step = ConfigureStep(project_id, settings_editor, notifier, self._on_configuration_done)
        self.sync_step = SyncStep(sync_runner, notifier, self._on_sync_complete)

    @property
    def step_states(self) -> StepStates:
        return derive_step_states(
            self.state.source is not None,
            self.state.did_complete_configuration,
        )

    def reset(self):
        self.state = WizardState()

    def set_open(self, open: bool):
        if not open:
            self.reset()
        self.open = open
        if self.on_open_change:
            self.on_open_change(open)

    async def connect(self, environment: SalesforceEnvironment, instance_url: str) -> Optional[Source]:
        return await self.connect_step.submit(environment, instance_url)

    async def configure(self):
        await self.configure_step.run(self.state.source, self.step_states.configure)

    async def sync(self):
        await self.sync_step.run(self.state.source, self.step_states.sync)

    async def run(self, environment: SalesforceEnvironment, instance_url: str) -> Optional[Source]:
        """Drive the whole flow once; returns the created source if the wizard got that far."""
        self.set_open(True)
        source = await self.connect(environment, instance_url)
        if source is None:
            return None

        await self.configure()
        await self.sync()
        return source

    def _on_did_connect(self, source: Source):
        self.state.source = source

    def _on_configuration_done(self):
        self.state.did_complete_configuration = True

    def _on_sync_complete(self):
        self.reset()
        self.set_open(False)
