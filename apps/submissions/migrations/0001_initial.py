# Generated manually for the submission log

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Submission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.IntegerField(db_index=True)),
                ('problem_id', models.IntegerField(db_index=True)),
                ('status', models.CharField(choices=[('Waiting', 'Waiting'), ('Compiling', 'Compiling'), ('Running', 'Running'), ('Accepted', 'Accepted'), ('Wrong Answer', 'Wrong Answer'), ('File Error', 'File Error'), ('Output Limit Exceeded', 'Output Limit Exceeded'), ('Runtime Error', 'Runtime Error'), ('Time Limit Exceeded', 'Time Limit Exceeded'), ('Memory Limit Exceeded', 'Memory Limit Exceeded'), ('Compile Error', 'Compile Error'), ('Partially Correct', 'Partially Correct'), ('System Error', 'System Error')], default='Waiting', max_length=50)),
                ('type', models.SmallIntegerField(choices=[(0, 'Normal'), (1, 'Contest'), (2, 'Practice')], default=0)),
                ('submit_time', models.IntegerField(db_index=True)),
                ('language', models.CharField(blank=True, max_length=20)),
            ],
            options={
                'db_table': 'submissions',
                'ordering': ['-submit_time', '-id'],
                'indexes': [
                    models.Index(fields=['user_id', 'type', 'status'], name='submissions_user_id_0e4d6b_idx'),
                    models.Index(fields=['user_id', 'submit_time'], name='submissions_user_id_5c1a9f_idx'),
                ],
            },
        ),
    ]
