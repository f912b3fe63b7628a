# billing/urls.py

from django.urls import path
from . import views

app_name = 'billing'

urlpatterns = [
    # =============================================================================
    # STUDENT
    # =============================================================================
    path('my-bills/', views.my_bills, name='my_bills'),
    path('bills/<uuid:pk>/pay/', views.pay_bill, name='pay_bill'),
    path('statement.pdf', views.statement_pdf, name='statement_pdf'),


    # =============================================================================
    # ACCOUNTANT
    # =============================================================================
    path('bills/<uuid:pk>/approve/', views.approve_payment, name='approve_payment'),
    path('bills/<uuid:pk>/reject/', views.reject_payment, name='reject_payment'),
    path('bills/<uuid:pk>/record/', views.record_payment, name='record_payment'),
    path('reports/bills.xlsx', views.bills_report_xlsx, name='bills_report_xlsx'),


    # =============================================================================
    # REGISTRAR
    # =============================================================================
    path('enrollments/<uuid:pk>/approve/', views.approve_enrollment, name='approve_enrollment'),
    path('enrollments/<uuid:pk>/reject/', views.reject_enrollment, name='reject_enrollment'),
]
