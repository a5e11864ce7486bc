from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import TagConfigViewSet, TagViewSet


router = DefaultRouter(trailing_slash=False)
router.register("tag-configs", TagConfigViewSet, basename="tag-configs")
router.register("tags", TagViewSet, basename="tags")

urlpatterns = [
    path("", include(router.urls)),
]
