from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='CachedRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('namespace', models.CharField(default='tasks', max_length=100)),
                ('key', models.CharField(max_length=255)),
                ('value', models.JSONField(blank=True, null=True)),
                ('last_accessed_at', models.DateTimeField(help_text='When the entry was last written; cache freshness is measured from here')),
                ('needs_sync', models.BooleanField(default=False)),
                ('pending_create', models.BooleanField(default=False)),
                ('version', models.PositiveIntegerField(default=1)),
                ('base_updated_at', models.DateTimeField(blank=True, help_text='Backend updated_at the cached value was derived from', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Cached Record',
                'verbose_name_plural': 'Cached Records',
                'ordering': ['namespace', 'key'],
                'indexes': [models.Index(fields=['namespace', 'needs_sync'], name='todos_cache_needs_sync_idx')],
                'unique_together': {('namespace', 'key')},
            },
        ),
    ]
