from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenRefreshView
from django.conf import settings
from django.conf.urls.static import static

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi


# Swagger Configuration
schema_view = get_schema_view(
    openapi.Info(
        title="Expense Approval API",
        default_version='v1',
        description="""
        # Expense Approval & Batch Payment API

        ## Features
        - Role-based access control (employee, L1-L3 approvers, finance, admin)
        - Eligible expense listing for payment
        - Batch payment settlement by UTR reference
        - OTP-gated batch payment settlement
        - Batch payment history
        - Realtime event polling

        ## Authentication
        This API uses JWT (JSON Web Tokens) for authentication.

        ### Login Flow:
        1. Call /api/v1/users/token/ with email and password
        2. Receive access and refresh tokens
        3. Use access token in Authorization header: Bearer <token>

        ## Batch Payment Roles
        - *Finance*: settle approved expenses
        - *L3 Approver*: settle approved expenses
        """,
        contact=openapi.Contact(email="support@example.com"),
        license=openapi.License(name="Proprietary"),
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # API Documentation
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
    path('swagger.json', schema_view.without_ui(cache_timeout=0), name='schema-json'),

    # API v1
    path('api/v1/users/', include('home.urls')),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/v1/batch-payments/', include('batch_payments.urls')),
]


if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
