import django.core.validators
import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Election',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(help_text='Election title', max_length=200, validators=[django.core.validators.MaxLengthValidator(200)])),
                ('description', models.TextField(blank=True, default='', help_text='Optional details about the election', max_length=1000)),
                ('start_at', models.DateTimeField(help_text='Voting opens at this instant')),
                ('end_at', models.DateTimeField(help_text='Voting closes at this instant (exclusive)')),
                ('status', models.CharField(choices=[('upcoming', 'Upcoming'), ('active', 'Active'), ('completed', 'Completed')], default='upcoming', help_text='Lifecycle state, managed by the election scheduler', max_length=20)),
                ('live_results', models.BooleanField(default=True, help_text='Whether results are published while the election is active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-start_at'],
                'indexes': [
                    models.Index(fields=['status'], name='election_status_idx'),
                    models.Index(fields=['-start_at'], name='election_start_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('end_at__gt', models.F('start_at'))), name='election_window_not_empty'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Candidate',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(help_text='Candidate name', max_length=100, validators=[django.core.validators.MaxLengthValidator(100)])),
                ('party', models.CharField(blank=True, default='', max_length=100)),
                ('platform', models.TextField(blank=True, default='', max_length=2000)),
                ('bio', models.TextField(blank=True, default='', max_length=1000)),
                ('roster_position', models.PositiveIntegerField(editable=False, help_text='Registration order within the election')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('election', models.ForeignKey(help_text='The election this candidate stands in', on_delete=django.db.models.deletion.CASCADE, related_name='candidates', to='elections.election')),
            ],
            options={
                'ordering': ['election', 'roster_position'],
                'constraints': [
                    models.UniqueConstraint(fields=('election', 'roster_position'), name='candidate_unique_roster_position'),
                    models.UniqueConstraint(fields=('election', 'name'), name='candidate_unique_name_per_election'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Ballot',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('voter_id', models.CharField(help_text='Identity of the voter (from the authentication layer)', max_length=64)),
                ('cast_at', models.DateTimeField()),
                ('candidate', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ballots', to='elections.candidate')),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='ballots', to='elections.election')),
            ],
            options={
                'ordering': ['-cast_at'],
                'indexes': [
                    models.Index(fields=['election', 'candidate'], name='ballot_election_candidate_idx'),
                    models.Index(fields=['-cast_at'], name='ballot_cast_at_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('voter_id', 'election'), name='ballot_one_per_voter_per_election'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TallyEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('vote_count', models.PositiveIntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('candidate', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tally_entries', to='elections.candidate')),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tally_entries', to='elections.election')),
            ],
            options={
                'verbose_name_plural': 'tally entries',
                'constraints': [
                    models.UniqueConstraint(fields=('election', 'candidate'), name='tally_entry_unique_candidate'),
                ],
            },
        ),
    ]
