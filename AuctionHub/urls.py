from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/auctions/', include('auctions.urls')),
    path('api/notifications/', include('notifications.urls')),
]
