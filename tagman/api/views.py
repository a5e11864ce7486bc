"""
Tagman API Views — ViewSets para a REST API.

Endpoints:
    /api/tag-configs                            CRUD de configurações
    /api/tag-configs/meta/number-formats        formatos disponíveis
    /api/tag-configs/meta/available-models      models registrados
    /api/tags                                   busca de tags (read-only)
    /api/tags/bulk/regenerate                   regenera em lote
    /api/tags/bulk/delete                       remove em lote

Erros do domínio viram respostas {"code", "message", "context"}: conflitos
de unicidade respondem 409. Erros inesperados respondem 500 genérico, com o
detalhe apenas em modo debug.
"""

from __future__ import annotations

import logging

from django.core.exceptions import PermissionDenied
from django.db.models import Q
from django.http import Http404
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import APIException
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle, UserRateThrottle

from tagman import registry
from tagman.conf import get_tagman_setting, is_debug
from tagman.exceptions import (
    ConfigConflict,
    ConfigNotFound,
    DuplicateTag,
    InvalidTagFormat,
    StoreUnavailable,
    TagmanError,
)
from tagman.models import Tag, TagConfig
from tagman.services import BulkService, ConfigService

from .serializers import BulkTagIdsSerializer, TagConfigSerializer, TagSerializer


logger = logging.getLogger(__name__)

NUMBER_FORMAT_EXAMPLES = {
    TagConfig.NumberFormat.SEQUENTIAL: "PREFIX-001",
    TagConfig.NumberFormat.RANDOM: "PREFIX-1698765432",
    TagConfig.NumberFormat.BRANCH_BASED: "PREFIX-001-{branch_id}",
}

ERROR_STATUS = {
    ConfigConflict: status.HTTP_409_CONFLICT,
    DuplicateTag: status.HTTP_409_CONFLICT,
    ConfigNotFound: status.HTTP_404_NOT_FOUND,
    InvalidTagFormat: status.HTTP_400_BAD_REQUEST,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _search_term(request) -> str:
    """Termo de busca limpo (icontains escapa curingas do LIKE)."""
    return (request.query_params.get("search") or "").strip()[:100]


class TagmanPagination(PageNumberPagination):
    page_size = 15
    page_size_query_param = "per_page"
    max_page_size = 100


class TagmanAPIMixin:
    """Permissões via TAGMAN["DEFAULT_PERMISSION_CLASSES"] e tradução de erros."""

    pagination_class = TagmanPagination
    throttle_classes = [AnonRateThrottle, UserRateThrottle]

    def get_permissions(self):
        return [permission() for permission in get_tagman_setting("DEFAULT_PERMISSION_CLASSES")]

    def handle_exception(self, exc):
        if isinstance(exc, TagmanError):
            http_status = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
            return Response(
                {"code": exc.code, "message": exc.message, "context": exc.context},
                status=http_status,
            )
        if isinstance(exc, (APIException, Http404, PermissionDenied)):
            return super().handle_exception(exc)

        logger.exception("Tagman API request failed", extra={"path": self.request.path})
        body = {"code": "server_error", "message": "An unexpected error occurred."}
        if is_debug():
            body["detail"] = f"{type(exc).__name__}: {exc}"
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class TagConfigViewSet(TagmanAPIMixin, viewsets.ModelViewSet):
    """
    ViewSet para configurações de tag.

    Filtros:
        ?search=    entity_type, prefix ou description
        ?number_format=sequential|random|branch_based
    """

    queryset = TagConfig.objects.all()
    serializer_class = TagConfigSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        search = _search_term(self.request)
        if search:
            qs = qs.filter(
                Q(entity_type__icontains=search)
                | Q(prefix__icontains=search)
                | Q(description__icontains=search)
            )
        number_format = self.request.query_params.get("number_format")
        if number_format:
            qs = qs.filter(number_format=number_format)
        return qs

    def perform_destroy(self, instance):
        ConfigService.delete(instance)

    @action(detail=False, methods=["get"], url_path="meta/number-formats")
    def number_formats(self, request, *args, **kwargs):
        data = [
            {"value": value, "label": str(label), "example": NUMBER_FORMAT_EXAMPLES[value]}
            for value, label in TagConfig.NumberFormat.choices
        ]
        return Response(data)

    @action(detail=False, methods=["get"], url_path="meta/available-models")
    def available_models(self, request, *args, **kwargs):
        configured = set(TagConfig.objects.values_list("entity_type", flat=True))
        data = [
            {
                "value": taggable.entity_type,
                "label": taggable.label,
                "branch_field": taggable.branch_field,
                "configured": taggable.entity_type in configured,
            }
            for taggable in sorted(registry.get_all_taggables(), key=lambda t: t.entity_type)
        ]
        return Response(data)


class TagViewSet(TagmanAPIMixin, viewsets.ReadOnlyModelViewSet):
    """
    ViewSet para tags (read-only + operações em lote).

    Filtros:
        ?search=    trecho do value
        ?model=     entity_type do dono (ex: inventory.Equipment)
    """

    queryset = Tag.objects.all()
    serializer_class = TagSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        search = _search_term(self.request)
        if search:
            qs = qs.filter(value__icontains=search)
        model = self.request.query_params.get("model")
        if model:
            qs = qs.of_type(model)
        return qs

    @action(detail=False, methods=["post"], url_path="bulk/regenerate")
    def bulk_regenerate(self, request, *args, **kwargs):
        s = BulkTagIdsSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        result = BulkService().regenerate(s.validated_data["tag_ids"])
        return Response(result, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="bulk/delete")
    def bulk_delete(self, request, *args, **kwargs):
        s = BulkTagIdsSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        result = BulkService().delete(s.validated_data["tag_ids"])
        return Response(result, status=status.HTTP_200_OK)
