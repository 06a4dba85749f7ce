# apps/accounts/models.py
from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    ROLE_CHOICES = (
        ('admin', 'Admin'),
        ('accountant', 'Accountant'),
        ('teacher', 'Teacher'),
        ('student', 'Student'),
        ('parent', 'Parent'),
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='student')
    phone = models.CharField(max_length=20, blank=True, null=True)  # Contact number

    FINANCE_ROLES = ('admin', 'accountant')

    def __str__(self):
        return self.username

    @property
    def can_manage_fees(self):
        """Admins and accountants record payments and edit fee structures"""
        return self.is_superuser or self.role in self.FINANCE_ROLES
