from rest_framework import serializers

from expenses.models import Expense
from .models import BatchPayment


# ------------------------------
# Request serializers
# ------------------------------
class ExpenseIdsField(serializers.ListField):
    child = serializers.IntegerField(min_value=1)

    def __init__(self, **kwargs):
        kwargs.setdefault('allow_empty', False)
        kwargs.setdefault('error_messages', {
            'empty': 'Please provide at least one expense ID',
            'not_a_list': 'Please provide at least one expense ID',
        })
        super().__init__(**kwargs)


class ProcessUtrSerializer(serializers.Serializer):
    """
    Input for settling a batch against an operator supplied UTR.
    """
    expense_ids = ExpenseIdsField()
    utr_number = serializers.CharField(
        max_length=100,
        error_messages={'blank': 'UTR number is required', 'required': 'UTR number is required'},
    )
    payment_remarks = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)


class GenerateOtpSerializer(serializers.Serializer):
    expense_ids = ExpenseIdsField()


class VerifyOtpSerializer(serializers.Serializer):
    otp_id = serializers.UUIDField()
    otp = serializers.RegexField(
        r'^\d{6}$',
        error_messages={'invalid': 'OTP must be a 6-digit number'},
    )
    utr_number = serializers.CharField(max_length=100, required=False, allow_blank=True)
    payment_remarks = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)


class CancelOtpSerializer(serializers.Serializer):
    otp_id = serializers.UUIDField(error_messages={'required': 'OTP ID is required'})


# ------------------------------
# Output serializers
# ------------------------------
class BatchPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = BatchPayment
        fields = [
            'id',
            'utr_number',
            'expense_count',
            'total_amount',
            'payment_remarks',
            'payment_method',
            'created_at',
        ]
        read_only_fields = fields


class EligibleExpenseSerializer(serializers.ModelSerializer):
    submitter_name = serializers.CharField(source='submitted_by.get_full_name', read_only=True)
    submitter_email = serializers.EmailField(source='submitted_by.email', read_only=True)
    site_name = serializers.CharField(source='site.name', read_only=True, default=None)
    site_code = serializers.CharField(source='site.code', read_only=True, default=None)

    class Meta:
        model = Expense
        fields = [
            'id',
            'expense_number',
            'title',
            'amount',
            'status',
            'submitter_name',
            'submitter_email',
            'site_name',
            'site_code',
            'created_at',
        ]
        read_only_fields = fields
