from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from elections.apps import get_engine
from elections.exceptions import StorageUnavailable
from elections.models import Election


class Command(BaseCommand):
    help = "Rebuild cached tallies from the ballots table (all elections, or the ones given)."

    def add_arguments(self, parser):
        parser.add_argument(
            "election_ids",
            nargs="*",
            help="Election UUIDs to reconcile (default: every election).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report drift without rewriting the tally cache.",
        )

    def handle(self, *args, **options):
        engine = get_engine()
        dry_run = bool(options.get("dry_run"))

        elections = Election.objects.order_by("start_at")
        if options["election_ids"]:
            try:
                elections = elections.filter(pk__in=options["election_ids"])
                found = elections.count()
            except ValidationError as exc:
                raise CommandError(f"Invalid election id: {exc}") from exc
            if found != len(set(options["election_ids"])):
                raise CommandError("One or more election ids do not exist.")

        repaired = 0
        failed = 0
        for election in elections.only("id", "title"):
            try:
                if dry_run:
                    recount = engine.ballot_store.counts_for(election.id)
                    cached = {r.candidate_id: r.vote_count for r in engine.tally.get_results(election.id)}
                    if cached != dict(recount):
                        repaired += 1
                        self.stdout.write(f"[dry-run] {election.title} ({election.id}) drifted: "
                                          f"cache {cached} vs ballots {dict(recount)}")
                elif engine.tally.reconcile(election.id):
                    repaired += 1
                    self.stdout.write(f"Rebuilt tally for {election.title} ({election.id}).")
            except StorageUnavailable as exc:
                failed += 1
                self.stderr.write(f"Failed to reconcile election {election.id}: {exc}")

        verb = "would need repair" if dry_run else "repaired"
        self.stdout.write(f"{repaired} election(s) {verb}; failed {failed}.")
