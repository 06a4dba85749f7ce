# apps/academics/urls.py
from django.urls import path
from . import views

urlpatterns = [
    # Class endpoints
    path('classes/', views.list_classes, name='list-classes'),
]
