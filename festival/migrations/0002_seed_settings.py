from django.db import migrations


DEFAULT_SETTINGS = {
    "max_on_stage_registrations": {"limit": 5},
    "max_off_stage_registrations": {"limit": 4},
    "global_registration_open": {"enabled": True},
    "auto_approve_registrations": {"enabled": False},
    "scoreboard_visible": {"enabled": False},
}


def seed_settings(apps, schema_editor):
    Setting = apps.get_model('festival', 'Setting')  # historical model, not direct import
    for key, value in DEFAULT_SETTINGS.items():
        Setting.objects.get_or_create(key=key, defaults={"value": value})


def unseed_settings(apps, schema_editor):
    Setting = apps.get_model('festival', 'Setting')
    Setting.objects.filter(key__in=list(DEFAULT_SETTINGS)).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('festival', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(seed_settings, unseed_settings),
    ]
