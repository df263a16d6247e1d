from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission

from studio.core.roles import APP_ROLES, ADMIN, INTERNAL, ROLE_DESCRIPTIONS


class Command(BaseCommand):
    help = 'Create Django user groups for the application roles: admin, internal, freelancer, client'

    def handle(self, *args, **options):
        created_count = 0
        existing_count = 0

        for role in APP_ROLES:
            group, created = Group.objects.get_or_create(name=role)

            if created:
                self.stdout.write(self.style.SUCCESS(f'Created group: {role} ({ROLE_DESCRIPTIONS[role]})'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {role}')
                existing_count += 1

            if role == ADMIN:
                group.permissions.set(Permission.objects.all())
                self.stdout.write('  Added all permissions to admin group')
            elif role == INTERNAL:
                # Everything except user administration
                group.permissions.set(
                    Permission.objects.exclude(content_type__app_label__in=['admin', 'auth', 'core'])
                )
                self.stdout.write('  Added module permissions to internal group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {existing_count} groups already existed'
        ))
