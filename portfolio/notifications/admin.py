from django.contrib import admin

from portfolio.notifications import models


@admin.register(models.Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ["id", "recipient", "title", "kind", "priority", "is_read"]
    search_fields = ["title", "message"]
    list_filter = ["kind", "priority", "is_read", "created_at"]
