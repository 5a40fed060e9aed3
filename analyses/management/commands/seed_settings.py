from django.core.management.base import BaseCommand

from analyses.services.org_settings import seed_defaults


class Command(BaseCommand):
    help = "Create the default organization settings that are missing."

    def handle(self, *args, **options):
        created = seed_defaults()
        self.stdout.write(self.style.SUCCESS(f"Seeded {created} settings"))
