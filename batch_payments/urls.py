from django.urls import path
from . import views

urlpatterns = [
    path('eligible/', views.EligibleExpensesView.as_view(), name='batch-eligible-expenses'),

    # Direct settlement
    path('process-utr/', views.ProcessUtrView.as_view(), name='batch-process-utr'),

    # OTP flow
    path('generate-otp/', views.GenerateOtpView.as_view(), name='batch-generate-otp'),
    path('verify-and-process/', views.VerifyAndProcessView.as_view(), name='batch-verify-and-process'),
    path('cancel-otp/', views.CancelOtpView.as_view(), name='batch-cancel-otp'),

    path('history/', views.BatchHistoryView.as_view(), name='batch-history'),
    path('events/', views.RealtimeEventsView.as_view(), name='batch-events'),
]
