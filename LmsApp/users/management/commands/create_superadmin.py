from django.core.management.base import BaseCommand, CommandError

from LmsApp.core.choices import Role
from LmsApp.users.models import User

class Command(BaseCommand):
    help = "Create a superadmin account, or promote an existing account with the same email."

    def add_arguments(self, parser):
        parser.add_argument("email")
        parser.add_argument("--password", required=True)
        parser.add_argument("--display-name", default="Super Admin")

    def handle(self, *args, **options):
        email = options["email"].strip().lower()
        if not email:
            raise CommandError("Email is required")
        user, created = User.objects.get_or_create(
            email=email,
            defaults={"username": email, "display_name": options["display_name"]},
        )
        user.role = Role.SUPERADMIN
        user.is_active = True
        user.is_staff = True
        user.is_superuser = True
        user.display_name = options["display_name"]
        user.set_password(options["password"])
        user.save()
        verb = "Created" if created else "Promoted"
        self.stdout.write(self.style.SUCCESS(f"{verb} superadmin {email} (id {user.pk})"))
