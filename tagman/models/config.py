from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models, transaction
from django.utils.translation import gettext_lazy as _


PREFIX_VALIDATOR = RegexValidator(
    regex=r"^[A-Za-z0-9_-]+$",
    message=_("Use apenas letras, números, hífen e underscore."),
)

# Saves só do contador (Allocator) não invalidam o cache; o contador é sempre relido sob lock.
COUNTER_ONLY_FIELDS = frozenset({"current_number", "updated_at"})


class TagConfig(models.Model):
    """
    Configuração de geração de tags por tipo de entidade.

    Uma linha por entity_type (label do model, ex.: "inventory.Equipment").
    A linha também é o ponto de exclusão mútua da alocação sequencial:
    o Allocator faz SELECT ... FOR UPDATE nela antes de incrementar
    current_number.

    Formatos:
    - sequential: PREFIX-001, PREFIX-002, ... (contador atômico)
    - random: PREFIX-<unix timestamp> (sem lock, sem garantia de unicidade)
    - branch_based: PREFIX-001-<branch> (contador atômico por branch)
    """

    class NumberFormat(models.TextChoices):
        SEQUENTIAL = "sequential", _("sequencial")
        RANDOM = "random", _("aleatório (timestamp)")
        BRANCH_BASED = "branch_based", _("por filial")

    entity_type = models.CharField(_("tipo de entidade"), max_length=255, unique=True)
    prefix = models.CharField(_("prefixo"), max_length=10, validators=[PREFIX_VALIDATOR])
    separator = models.CharField(_("separador"), max_length=5, default="-")
    number_format = models.CharField(
        _("formato"),
        max_length=16,
        choices=NumberFormat.choices,
        default=NumberFormat.SEQUENTIAL,
    )
    auto_generate = models.BooleanField(_("gerar automaticamente"), default=True)
    current_number = models.PositiveBigIntegerField(_("número atual"), default=0)
    padding_length = models.PositiveSmallIntegerField(
        _("dígitos"),
        default=3,
        validators=[MinValueValidator(1), MaxValueValidator(10)],
    )
    description = models.TextField(_("descrição"), blank=True, default="")

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        app_label = "tagman"
        verbose_name = _("configuração de tag")
        verbose_name_plural = _("configurações de tag")
        ordering = ("entity_type",)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._loaded_entity_type = self.__dict__.get("entity_type")

    def __str__(self) -> str:
        return f"{self.entity_type} ({self.prefix}{self.separator}…)"

    def clean(self):
        super().clean()
        if self.pk:
            stored = (
                TagConfig.objects.filter(pk=self.pk)
                .values_list("current_number", flat=True)
                .first()
            )
            if stored is not None and self.current_number < stored:
                raise ValidationError(
                    {"current_number": _("O contador não pode ser reduzido (atual: %(n)s).") % {"n": stored}}
                )

    def save(self, *args, **kwargs):
        update_fields = kwargs.get("update_fields")
        previous_type = self._loaded_entity_type
        super().save(*args, **kwargs)
        self._loaded_entity_type = self.__dict__.get("entity_type")
        if update_fields is not None and set(update_fields) <= COUNTER_ONLY_FIELDS:
            return
        self._invalidate_cache(previous_type)

    def delete(self, *args, **kwargs):
        entity_type = self.entity_type
        result = super().delete(*args, **kwargs)
        self._invalidate_cache(entity_type)
        return result

    def _invalidate_cache(self, previous_type: str | None) -> None:
        """Invalida o cache já e de novo no commit (fecha a janela de leitura stale)."""
        from tagman.cache import invalidate_everywhere

        entity_types = {self.entity_type, previous_type} - {None, ""}
        for entity_type in entity_types:
            invalidate_everywhere(entity_type)
            transaction.on_commit(lambda et=entity_type: invalidate_everywhere(et))

    def format_number(self, number: int, branch: str | None = None) -> str:
        """Formata PREFIX + SEP + número com padding (+ SEP + branch)."""
        value = f"{self.prefix}{self.separator}{str(number).zfill(self.padding_length)}"
        if branch is not None:
            value = f"{value}{self.separator}{branch}"
        return value


class TagBranchCounter(models.Model):
    """
    Contador atômico por (config, branch) para o formato branch_based.

    Criado sob demanda na primeira alocação do branch, semeado com o maior
    número já presente nas tags existentes desse branch.
    """

    config = models.ForeignKey(
        TagConfig,
        verbose_name=_("configuração"),
        on_delete=models.CASCADE,
        related_name="branch_counters",
    )
    branch = models.CharField(_("filial"), max_length=64)
    current_number = models.PositiveBigIntegerField(_("número atual"), default=0)

    class Meta:
        app_label = "tagman"
        verbose_name = _("contador por filial")
        verbose_name_plural = _("contadores por filial")
        constraints = [
            models.UniqueConstraint(fields=["config", "branch"], name="tagman_unique_branch_counter"),
        ]

    def __str__(self) -> str:
        return f"{self.config.entity_type}:{self.branch} = {self.current_number}"
