from django.contrib import admin
from .models import Site, Expense, ExpenseComment, ApprovalHistory


@admin.register(Site)
class SiteAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'is_active', 'total_expenses', 'total_paid', 'paid_count']
    search_fields = ['name', 'code']
    readonly_fields = ['total_expenses', 'expense_count', 'total_paid', 'paid_count']


class ExpenseCommentInline(admin.TabularInline):
    model = ExpenseComment
    extra = 0
    readonly_fields = ['user', 'text', 'is_internal', 'created_at']
    can_delete = False


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['expense_number', 'submitted_by', 'site', 'amount', 'status', 'payment_date']
    list_filter = ['status', 'site']
    search_fields = ['expense_number', 'title', 'submitted_by__email']
    readonly_fields = ['expense_number', 'payment_amount', 'payment_date', 'payment_processed_by', 'payment_details']
    inlines = [ExpenseCommentInline]


@admin.register(ApprovalHistory)
class ApprovalHistoryAdmin(admin.ModelAdmin):
    list_display = ['expense', 'approver', 'action', 'level', 'payment_amount', 'created_at']
    list_filter = ['action', 'level']
    search_fields = ['expense__expense_number', 'approver__email']

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
