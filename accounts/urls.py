from django.urls import path
from . import views

app_name = "accounts"

urlpatterns = [
    path("register/", views.register, name="register"),
    path("login/", views.login, name="login"),
    path("me/", views.me, name="me"),
    path("users/", views.users, name="user-list"),
    path("users/<int:user_id>/", views.user_detail, name="user-detail"),
]
