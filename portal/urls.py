"""
URL configuration for the portal project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
import os
from django.contrib import admin
from django.urls import include, path
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include(('assignments.api.urls', 'assignments'), namespace='assignments')),
]

# Serve uploaded media locally during development when S3 is not configured
if settings.DEBUG and not os.environ.get("AWS_STORAGE_BUCKET_NAME"):
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
