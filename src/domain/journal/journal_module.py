from dependency_injector import containers, providers
from .journal_service import JournalService


class JournalModule(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(modules=[".controller"])
    root = providers.DependenciesContainer()

    journal_service = providers.Factory(
        JournalService,
        db_client=root.db_client,
        explanations_keep=root.config.provided.journal_explanations_keep,
        strategies_keep=root.config.provided.journal_strategies_keep,
    )
