from datetime import date
from decimal import Decimal

import pytest
from django.contrib.auth.models import User

from accounts.models import UserProfile
from billing.models import Bill, Enrollment, Program
from core.models import FinancialSettings


def _make_user(username, role=UserProfile.ROLE_STUDENT, **extra):
    user = User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password='s3cure-pass-123',
        **extra
    )
    if role != UserProfile.ROLE_STUDENT:
        UserProfile.objects.filter(user=user).update(role=role)
        user = User.objects.get(pk=user.pk)
    return user


@pytest.fixture
def financial_settings(db):
    return FinancialSettings.get_instance()


@pytest.fixture
def student(db):
    return _make_user('ana.reyes', first_name='Ana', last_name='Reyes')


@pytest.fixture
def other_student(db):
    return _make_user('ben.cruz', first_name='Ben', last_name='Cruz')


@pytest.fixture
def accountant(db):
    return _make_user('accounting', role=UserProfile.ROLE_ACCOUNTANT)


@pytest.fixture
def registrar(db):
    return _make_user('registrar', role=UserProfile.ROLE_REGISTRAR)


@pytest.fixture
def program(db):
    return Program.objects.create(code='BSIT', name='BS Information Technology', price=Decimal('45000.00'))


@pytest.fixture
def enrollment(student, program):
    return Enrollment.objects.create(
        student=student,
        program=program,
        tuition_fee=Decimal('10000.00'),
        payment_plan=Enrollment.PLAN_MONTHLY,
        academic_year='2024-2025',
        semester='1st',
    )


@pytest.fixture
def make_bill(student):
    def _make(amount, due_date, owner=None, status=Bill.STATUS_PENDING, **kwargs):
        return Bill.objects.create(
            student=owner or student,
            amount=Decimal(amount),
            due_date=due_date,
            status=status,
            **kwargs
        )
    return _make


@pytest.fixture
def three_bills(make_bill, financial_settings):
    """Three pending 1,000.00 bills due D1 < D2 < D3"""
    return [
        make_bill('1000.00', date(2025, 1, 1)),
        make_bill('1000.00', date(2025, 2, 1)),
        make_bill('1000.00', date(2025, 3, 1)),
    ]
