"""
Tagman Exceptions — Exceções específicas do Tagman.

Todas as exceções seguem o padrão:
- code: Código máquina do erro (ex.: "config_not_found", "duplicate_tag")
- message: Mensagem legível para humanos
- context: Dados adicionais sobre o erro (entity_type, owner_id, attempts...)

Elegíveis a fallback (recuperadas localmente, exceto em modo debug):
    ConfigNotFound, ConcurrencyExhausted, TagGenerationError

Sempre propagadas ao chamador:
    DuplicateTag, InvalidTagFormat, StoreUnavailable, ConfigConflict,
    InvalidConfig
"""

from __future__ import annotations


class TagmanError(Exception):
    """
    Classe base para todas as exceções do Tagman.

    Attributes:
        code: Código máquina do erro
        message: Mensagem legível para humanos
        context: Dados adicionais sobre o erro
    """

    def __init__(self, code: str = "error", message: str = "", context: dict | None = None):
        self.code = code
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ConfigNotFound(TagmanError):
    """Não existe TagConfig para o entity_type. Dispara tag de fallback."""

    def __init__(self, entity_type: str):
        super().__init__(
            code="config_not_found",
            message=f"Tag configuration not found for entity type: {entity_type}",
            context={"entity_type": entity_type},
        )


class ConcurrencyExhausted(TagmanError):
    """Todas as tentativas falharam por lock/serialização."""

    def __init__(self, entity_type: str, attempts: int, owner_id: str | None = None):
        super().__init__(
            code="concurrency_exhausted",
            message=(
                f"Failed to generate tag for {entity_type} after {attempts} attempts "
                f"due to concurrency conflicts"
            ),
            context={"entity_type": entity_type, "attempts": attempts, "owner_id": owner_id},
        )


class TagGenerationError(TagmanError):
    """
    Erro irrecuperável de geração (config inválida, entidade sem branch...).

    Codes: "missing_branch", "invalid_config"
    """


class DuplicateTag(TagmanError):
    """Já existe Tag para (owner_type, owner_id)."""

    def __init__(self, owner_type: str, owner_id: str):
        super().__init__(
            code="duplicate_tag",
            message=f"A tag already exists for {owner_type} with ID {owner_id}",
            context={"owner_type": owner_type, "owner_id": owner_id},
        )


class InvalidTagFormat(TagmanError):
    """
    Valor de tag definido manualmente não passou na validação.

    Codes: "empty", "length_exceeded", "invalid_characters"
    """


class StoreUnavailable(TagmanError):
    """Banco indisponível. Nunca é retentado pelo Allocator."""


class ConfigConflict(TagmanError):
    """Violação de unicidade em TagConfig (entity_type duplicado)."""

    def __init__(self, entity_type: str):
        super().__init__(
            code="conflict",
            message="A tag configuration already exists for this entity type",
            context={"entity_type": entity_type},
        )


class InvalidConfig(TagmanError):
    """
    Alteração de TagConfig rejeitada.

    Codes: "counter_decrease"
    """
