# Generated manually for the accounts app

import apps.accounts.models
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('username', models.CharField(max_length=80, unique=True)),
                ('email', models.CharField(blank=True, max_length=120)),
                ('nickname', models.CharField(blank=True, max_length=80)),
                ('nameplate', models.TextField(blank=True)),
                ('information', models.TextField(blank=True)),
                ('ac_num', models.IntegerField(db_index=True, default=0)),
                ('submit_num', models.IntegerField(db_index=True, default=0)),
                ('is_admin', models.BooleanField(default=False)),
                ('is_show', models.BooleanField(db_index=True, default=True)),
                ('public_email', models.BooleanField(default=True)),
                ('prefer_dark_mode', models.BooleanField(default=False)),
                ('is_banned', models.BooleanField(default=False)),
                ('sex', models.IntegerField(default=0)),
                ('rating', models.IntegerField(default=0)),
                ('register_time', models.IntegerField(default=apps.accounts.models._unix_now)),
            ],
            options={
                'db_table': 'users',
            },
            managers=[
                ('objects', apps.accounts.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='UploadedFile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(db_index=True, max_length=80)),
                ('filename', models.CharField(max_length=255)),
                ('size', models.BigIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'uploaded_files',
                'ordering': ['filename'],
            },
        ),
        migrations.CreateModel(
            name='UserPrivilege',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('privilege', models.CharField(db_index=True, max_length=80)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='privileges', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_privileges',
            },
        ),
        migrations.AddConstraint(
            model_name='uploadedfile',
            constraint=models.UniqueConstraint(fields=('type', 'filename'), name='unique_uploaded_file'),
        ),
        migrations.AddConstraint(
            model_name='userprivilege',
            constraint=models.UniqueConstraint(fields=('user', 'privilege'), name='unique_user_privilege'),
        ),
    ]
