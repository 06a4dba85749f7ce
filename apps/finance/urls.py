# apps/finance/urls.py
from django.urls import path
from . import views

app_name = 'finance'

urlpatterns = [
    # Fee structures
    path('fee-structures/', views.fee_structures, name='fee-structures'),
    path('fee-structures/calculate/', views.calculate_fees, name='calculate-fees'),
    path('fee-structures/<int:pk>/', views.fee_structure_detail, name='fee-structure-detail'),
    path('fee-structures/<int:pk>/status/', views.fee_structure_status, name='fee-structure-status'),
    path('fee-structures/<int:pk>/components/', views.fee_structure_components, name='fee-structure-components'),
    path('fee-structures/<int:pk>/components/<int:component_id>/', views.fee_structure_component_detail,
         name='fee-structure-component-detail'),

    # Assignments & journal
    path('fees/assign/', views.assign_fee, name='assign-fee'),
    path('fees/students/<int:student_id>/', views.student_assignments, name='student-assignments'),
    path('fees/dashboard/', views.fee_dashboard, name='fee-dashboard'),
    path('fees/journals/generate/', views.generate_journals, name='generate-journals'),
    path('fees/journals/<int:pk>/waive/', views.waive_journal_entry, name='waive-journal-entry'),
    path('students/<int:student_id>/fee-journals/', views.student_fee_journals, name='student-fee-journals'),

    # Payments
    path('payments/', views.payments, name='payments'),
    path('payments/dashboard/', views.payment_dashboard, name='payment-dashboard'),
    path('payments/refunds/', views.refunds, name='refunds'),
    path('payments/refunds/<int:pk>/approve/', views.refund_action, {'action': 'approve'}, name='refund-approve'),
    path('payments/refunds/<int:pk>/reject/', views.refund_action, {'action': 'reject'}, name='refund-reject'),
    path('payments/refunds/<int:pk>/complete/', views.refund_action, {'action': 'complete'}, name='refund-complete'),
    path('payments/receipt/<int:pk>/', views.payment_receipt, name='payment-receipt'),
    path('payments/student/<int:student_id>/', views.student_payments, name='student-payments'),
    path('payments/student/<int:student_id>/fees/', views.student_fee_summary, name='student-fee-summary'),
    path('payments/<int:pk>/', views.payment_detail, name='payment-detail'),
    path('payments/<int:pk>/refund/', views.request_refund, name='request-refund'),
]
