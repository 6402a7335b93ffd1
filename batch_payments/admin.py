from django.contrib import admin
from .models import BatchOTP, BatchPayment


class ReadOnlyAdmin(admin.ModelAdmin):

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(BatchPayment)
class BatchPaymentAdmin(ReadOnlyAdmin):
    list_display = ['utr_number', 'user', 'expense_count', 'total_amount', 'payment_method', 'created_at']
    list_filter = ['payment_method', 'created_at']
    search_fields = ['utr_number', 'user__email']


@admin.register(BatchOTP)
class BatchOTPAdmin(ReadOnlyAdmin):
    list_display = ['id', 'user', 'expense_count', 'total_amount', 'is_used', 'invalidated_reason', 'attempts', 'expires_at']
    list_filter = ['is_used', 'invalidated_reason', 'purpose']
    search_fields = ['user__email']
    exclude = ['otp_hash', 'otp_salt']
