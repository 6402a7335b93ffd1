# home/models.py
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.utils import timezone
from django.core.validators import RegexValidator


class CustomUserManager(BaseUserManager):
    """
    Custom user manager for the expense approval system.
    Handles user creation with email as the unique identifier.
    """

    def create_user(self, email, password=None, **extra_fields):
        """
        Create and save a regular user with the given email and password.
        """
        if not email:
            raise ValueError('Users must have an email address')

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create and save a superuser with the given email and password.
        """
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', CustomUser.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')

        return self.create_user(email, password, **extra_fields)

    def get_by_natural_key(self, email):
        return self.get(email=email)


class CustomUser(AbstractBaseUser, PermissionsMixin):
    """
    User of the expense approval system.
    Employees submit expenses, L1-L3 approvers review them and finance pays them.
    """

    # User Roles
    EMPLOYEE = 'employee'
    L1_APPROVER = 'l1_approver'
    L2_APPROVER = 'l2_approver'
    L3_APPROVER = 'l3_approver'
    FINANCE = 'finance'
    ADMIN = 'admin'

    ROLE_CHOICES = [
        (EMPLOYEE, 'Employee'),
        (L1_APPROVER, 'L1 Approver'),
        (L2_APPROVER, 'L2 Approver'),
        (L3_APPROVER, 'L3 Approver'),
        (FINANCE, 'Finance'),
        (ADMIN, 'Administrator'),
    ]

    PAYMENT_ROLES = [FINANCE, L3_APPROVER]

    phone_regex = RegexValidator(
        regex=r'^\+?1?\d{9,15}$',
        message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed."
    )

    email = models.EmailField(
        verbose_name='email address',
        max_length=255,
        unique=True,
        db_index=True,
    )

    # Personal Information
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    phone = models.CharField(
        validators=[phone_regex],
        max_length=17,
        blank=True,
        null=True,
        help_text='Contact phone number, used for SMS notifications'
    )
    employee_id = models.CharField(
        max_length=50,
        unique=True,
        blank=True,
        null=True,
        help_text='Unique employee identification number'
    )

    # Role
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=EMPLOYEE,
        help_text='User role in the approval chain'
    )

    # Status Fields
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    # Timestamps
    date_joined = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    class Meta:
        db_table = 'custom_users'
        verbose_name = 'user'
        verbose_name_plural = 'users'
        ordering = ['-date_joined']
        indexes = [
            models.Index(fields=['role'], name='custom_users_role_idx'),
            models.Index(fields=['is_active'], name='custom_users_active_idx'),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.email})"

    def get_full_name(self):
        """
        Return the first_name plus the last_name, with a space in between.
        """
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email

    # shown in the admin header
    def get_short_name(self):
        return self.first_name or self.email.split('@')[0]

    # Role Check Methods
    def can_process_payments(self):
        """
        Check if user may settle approved expenses.
        """
        return self.role in self.PAYMENT_ROLES

    # Realtime channels
    @property
    def user_channel(self):
        return f"user-{self.pk}"

    @property
    def role_channel(self):
        return f"role-{self.role}"

    def save(self, *args, **kwargs):
        if self.role == self.ADMIN:
            self.is_staff = True
        super().save(*args, **kwargs)
