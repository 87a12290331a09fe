from django.contrib import admin, messages

from .models import Booking, BookingStatus
from .services import get_booking_store


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ['ref_id', 'name', 'start_date', 'end_date', 'time', 'status', 'amount_display', 'created_at']
    list_filter = ['status', 'start_date', 'created_at']
    search_fields = ['ref_id', 'payment_id', 'name', 'email']
    readonly_fields = ['id', 'created_at', 'updated_at']
    date_hierarchy = 'start_date'
    actions = ['mark_as_paid']

    def amount_display(self, obj):
        return f"{obj.amount:,.2f}"
    amount_display.short_description = 'Amount'

    @admin.action(description='Mark selected bookings as paid')
    def mark_as_paid(self, request, queryset):
        store = get_booking_store()
        updated = 0
        for booking_id in queryset.values_list('pk', flat=True):
            change = store.set_status_by_id(booking_id, BookingStatus.PAID)
            if change is not None and change.changed:
                updated += 1
        self.message_user(request, f"{updated} booking(s) marked as paid.", messages.SUCCESS)
