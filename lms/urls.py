"""URL configuration for the LMS app.

Batches are nested under their course; JWT token endpoints sit under
``auth/``.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from lms.views.views_batch import CourseBatchViewSet

router = DefaultRouter()
router.register(r"courses/(?P<course_pk>[^/.]+)/batches", CourseBatchViewSet, basename="course-batch")

urlpatterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("", include(router.urls)),
]
