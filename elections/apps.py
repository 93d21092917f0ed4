"""
Django app configuration for the elections module
=================================================

AppConfig subclass that defines the elections app. It is also where the
vote engine is assembled: the ballot store, tally engine, broadcaster and
gateway are built once here and handed to each other explicitly, so views
and commands reach them through the app registry instead of module globals.
"""

from django.apps import AppConfig, apps # pyright: ignore[reportMissingModuleSource]


class ElectionsConfig(AppConfig):
    """Configuration class for the elections application."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'elections'
    verbose_name = 'VoteX Elections'

    def ready(self):
        """Wire the vote engine collaborators together."""
        from .ballot_store import BallotStore
        from .broadcaster import Broadcaster
        from .gateway import VoteGateway
        from .tally import TallyEngine

        self.ballot_store = BallotStore()
        self.tally = TallyEngine(self.ballot_store)
        self.broadcaster = Broadcaster()
        self.gateway = VoteGateway(self.ballot_store, self.tally, self.broadcaster)


def get_engine():
    """Return the app config carrying ballot_store, tally, broadcaster, gateway."""
    return apps.get_app_config('elections')
