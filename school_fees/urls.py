# school_fees/urls.py
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # API endpoints
    path('api/v1/auth/', include('apps.accounts.urls')),
    path('api/v1/academics/', include('apps.academics.urls')),
    path('api/v1/', include('apps.finance.urls')),
]

admin.site.site_header = "School Fee Management"
admin.site.site_title = "Fee Admin"
admin.site.index_title = "Fees, payments and refunds"
