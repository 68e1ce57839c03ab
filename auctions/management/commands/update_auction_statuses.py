from django.core.management.base import BaseCommand

from auctions.lifecycle import run_sweep


class Command(BaseCommand):
    help = 'Moves auctions between upcoming, live and completed according to the clock'

    def handle(self, *args, **options):
        result = run_sweep()

        if result.changed:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Activated {len(result.activated)} and completed {len(result.completed)} auctions'
                )
            )
        else:
            self.stdout.write("No auction status changes")
