from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin
from unfold.decorators import display
from unfold.forms import AdminPasswordChangeForm, UserChangeForm, UserCreationForm

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin, ModelAdmin):
    form = UserChangeForm
    add_form = UserCreationForm
    change_password_form = AdminPasswordChangeForm

    list_display = ['id', 'username', 'full_name', 'email', 'role_badge', 'status_badge', 'last_login']
    list_filter = ['role', 'is_active']
    search_fields = ['username', 'email', 'first_name', 'last_name']
    ordering = ['username']

    fieldsets = BaseUserAdmin.fieldsets + (
        (_('Role'), {'fields': ('role',)}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (_('Role'), {'fields': ('email', 'role')}),
    )

    @display(description=_("Name"), ordering='first_name')
    def full_name(self, obj):
        return f"{obj.first_name} {obj.last_name}".strip() or "-"

    @display(description=_("Role"), label=True)
    def role_badge(self, obj):
        colors = {
            User.RoleChoices.ADMIN: 'danger',
            User.RoleChoices.MANAGER: 'warning',
            User.RoleChoices.STAFF: 'info',
        }
        return colors.get(obj.role, 'info'), obj.get_role_display()

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        if obj.is_active:
            return 'success', _("Active")
        return 'danger', _("Inactive")
