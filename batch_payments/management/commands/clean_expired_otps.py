from django.core.management.base import BaseCommand

from batch_payments.services import purge_expired_otps


class Command(BaseCommand):
    help = 'Delete batch payment OTPs that have expired'

    def handle(self, *args, **options):
        deleted = purge_expired_otps()
        self.stdout.write(self.style.SUCCESS(f'Deleted {deleted} expired batch OTP(s).'))
