import pytest
from decimal import Decimal

from expenses.models import Expense, ExpenseComment


@pytest.mark.django_db
class TestExpense:

    def test_expense_number_assigned_on_create(self, make_expense):
        expense = make_expense("100.00")
        assert expense.expense_number == f"EXP-{expense.pk:06d}"
        assert Expense.objects.get(pk=expense.pk).expense_number == expense.expense_number

    def test_mark_payment_processed(self, make_expense, finance_user):
        expense = make_expense("250.00")
        expense.mark_payment_processed(
            finance_user, "UTR55", "manual_bank_transfer", remarks="Paid", extra_details={"otp_id": "abc"},
        )

        expense.refresh_from_db()
        assert expense.status == Expense.PAYMENT_PROCESSED
        assert expense.payment_amount == Decimal("250.00")
        assert expense.payment_date is not None
        assert expense.payment_processed_by == finance_user
        assert expense.payment_details["utr_number"] == "UTR55"
        assert expense.payment_details["otp_id"] == "abc"

        comment = ExpenseComment.objects.get(expense=expense)
        assert comment.text == "Batch Payment (UTR: UTR55): Paid"
        assert comment.is_internal


@pytest.mark.django_db
class TestSiteStatistics:

    def test_payment_updates_paid_counters(self, site):
        site.update_statistics(Decimal("100.00"), is_payment=True)
        site.update_statistics(Decimal("50.50"), is_payment=True)

        assert site.total_paid == Decimal("150.50")
        assert site.paid_count == 2
        assert site.expense_count == 0

    def test_submission_updates_expense_counters(self, site):
        site.update_statistics(Decimal("80.00"))
        assert site.total_expenses == Decimal("80.00")
        assert site.expense_count == 1
        assert site.paid_count == 0
