import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="TagConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("entity_type", models.CharField(max_length=255, unique=True, verbose_name="tipo de entidade")),
                (
                    "prefix",
                    models.CharField(
                        max_length=10,
                        validators=[
                            django.core.validators.RegexValidator(
                                message="Use apenas letras, números, hífen e underscore.",
                                regex="^[A-Za-z0-9_-]+$",
                            )
                        ],
                        verbose_name="prefixo",
                    ),
                ),
                ("separator", models.CharField(default="-", max_length=5, verbose_name="separador")),
                (
                    "number_format",
                    models.CharField(
                        choices=[
                            ("sequential", "sequencial"),
                            ("random", "aleatório (timestamp)"),
                            ("branch_based", "por filial"),
                        ],
                        default="sequential",
                        max_length=16,
                        verbose_name="formato",
                    ),
                ),
                ("auto_generate", models.BooleanField(default=True, verbose_name="gerar automaticamente")),
                ("current_number", models.PositiveBigIntegerField(default=0, verbose_name="número atual")),
                (
                    "padding_length",
                    models.PositiveSmallIntegerField(
                        default=3,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(10),
                        ],
                        verbose_name="dígitos",
                    ),
                ),
                ("description", models.TextField(blank=True, default="", verbose_name="descrição")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
            ],
            options={
                "verbose_name": "configuração de tag",
                "verbose_name_plural": "configurações de tag",
                "ordering": ("entity_type",),
            },
        ),
        migrations.CreateModel(
            name="Tag",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("value", models.CharField(db_index=True, max_length=255, verbose_name="valor")),
                (
                    "owner_type",
                    models.CharField(
                        help_text="Label do model dono (ex: inventory.Equipment)",
                        max_length=255,
                        verbose_name="tipo do dono",
                    ),
                ),
                (
                    "owner_id",
                    models.CharField(
                        help_text="Primary key do dono, como string",
                        max_length=64,
                        verbose_name="ID do dono",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
            ],
            options={
                "verbose_name": "tag",
                "verbose_name_plural": "tags",
                "ordering": ("-created_at", "-id"),
                "indexes": [models.Index(fields=["owner_type", "value"], name="tagman_tag_type_value_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("owner_type", "owner_id"), name="tagman_unique_owner")
                ],
            },
        ),
        migrations.CreateModel(
            name="TagBranchCounter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("branch", models.CharField(max_length=64, verbose_name="filial")),
                ("current_number", models.PositiveBigIntegerField(default=0, verbose_name="número atual")),
                (
                    "config",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="branch_counters",
                        to="tagman.tagconfig",
                        verbose_name="configuração",
                    ),
                ),
            ],
            options={
                "verbose_name": "contador por filial",
                "verbose_name_plural": "contadores por filial",
                "constraints": [
                    models.UniqueConstraint(fields=("config", "branch"), name="tagman_unique_branch_counter")
                ],
            },
        ),
    ]
