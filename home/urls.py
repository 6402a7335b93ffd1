from django.urls import path
from .import views

urlpatterns = [
    # Authentication
    path('token/', views.MyTokenObtainPairView.as_view(), name='token_obtain_pair'),

    # User Profile
    path('profile/', views.UserProfileView.as_view(), name='profile'),
]
