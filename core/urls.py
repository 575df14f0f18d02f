"""Root URL configuration for the Django project.

Includes admin site, LMS app routes and the API schema views.
"""

from django.contrib import admin
from django.contrib.auth.decorators import login_required
from django.urls import include, path
from django.utils.decorators import method_decorator
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView


@method_decorator(login_required(login_url="/admin/login/"), name="dispatch")
class ProtectedSchemaView(SpectacularAPIView):
    pass

@method_decorator(login_required(login_url="/admin/login/"), name="dispatch")
class ProtectedSwaggerView(SpectacularSwaggerView):
    pass

urlpatterns = [
    path('admin/', admin.site.urls),

    path('api/', include('lms.urls')),
    # API schema and documentation
    path("schema/", ProtectedSchemaView.as_view(), name="schema"),
    path("api/docs/", ProtectedSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
]
