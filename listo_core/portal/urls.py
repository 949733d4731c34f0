from django.contrib.auth import views as auth_views
from django.contrib.auth.views import LogoutView
from django.urls import path, reverse_lazy

from . import (
    audit_views,
    estimate_views,
    payroll_views,
    prequal_views,
    tools_views,
    view_invoices,
    views,
)
from .forms import LoginForm

app_name = 'portal'

urlpatterns = [
    path('', views.home, name='home'),
    path('dashboard/', views.dashboard, name='dashboard'),
    path('tools/', views.tools, name='tools'),
    path('language/', views.set_language, name='set_language'),
    path('files/<path:path>', views.stored_file, name='stored_file'),

    # Authentication
    path('signup/', views.signup, name='signup'),
    path('login/', auth_views.LoginView.as_view(
        template_name='registration/login.html',
        authentication_form=LoginForm,
        redirect_authenticated_user=True,
    ), name='login'),
    path('logout/', LogoutView.as_view(next_page='portal:home'), name='logout'),
    path('password-reset/', auth_views.PasswordResetView.as_view(
        template_name='registration/password_reset_form.html',
        email_template_name='registration/password_reset_email.txt',
        subject_template_name='registration/password_reset_subject.txt',
        success_url=reverse_lazy('portal:password_reset_done'),
    ), name='password_reset'),
    path('password-reset/done/', auth_views.PasswordResetDoneView.as_view(
        template_name='registration/password_reset_done.html',
    ), name='password_reset_done'),
    path('password-reset/<uidb64>/<token>/', auth_views.PasswordResetConfirmView.as_view(
        template_name='registration/password_reset_confirm.html',
        success_url=reverse_lazy('portal:password_reset_complete'),
    ), name='password_reset_confirm'),
    path('password-reset/complete/', auth_views.PasswordResetCompleteView.as_view(
        template_name='registration/password_reset_complete.html',
    ), name='password_reset_complete'),

    # Account
    path('account/', views.account, name='account'),
    path('account/name/', views.update_name, name='account_name'),
    path('account/email/', views.update_email, name='account_email'),
    path('account/password/', views.update_password, name='account_password'),
    path('account/logo/', views.logo_upload, name='account_logo'),
    path('account/logo/remove/', views.logo_remove, name='account_logo_remove'),

    # Pre-qualification
    path('prequal/', prequal_views.prequal_overview, name='prequal'),
    path('prequal/w9/', prequal_views.w9_form, name='prequal_w9'),
    path('prequal/agreement/', prequal_views.agreement_form, name='prequal_agreement'),
    path('prequal/coi/upload/', prequal_views.coi_upload, name='prequal_coi_upload'),
    path('prequal/coi/expiry/', prequal_views.coi_expiry, name='prequal_coi_expiry'),
    path('prequal/coi/scan/', prequal_views.coi_scan, name='prequal_coi_scan'),

    # Payroll and workers
    path('payroll/', payroll_views.payroll_list, name='payroll'),
    path('payroll/<int:pk>/delete/', payroll_views.payroll_delete, name='payroll_delete'),
    path('payroll/export/csv/', payroll_views.payroll_export_csv, name='payroll_export_csv'),
    path('payroll/export/xlsx/', payroll_views.payroll_export_xlsx, name='payroll_export_xlsx'),
    path('workers/', payroll_views.worker_list, name='workers'),
    path('workers/<int:pk>/', payroll_views.worker_detail, name='worker_detail'),
    path('workers/<int:pk>/delete/', payroll_views.worker_delete, name='worker_delete'),
    path('workers/<int:pk>/archive/', payroll_views.worker_archive, name='worker_archive'),
    path('workers/<int:pk>/documents/', payroll_views.worker_document_upload, name='worker_document_upload'),
    path('workers/<int:pk>/documents/<str:doc_type>/remove/', payroll_views.worker_document_remove,
         name='worker_document_remove'),
    path('workers/<int:pk>/w9-scan/', payroll_views.worker_w9_scan, name='worker_w9_scan'),

    # Invoices
    path('invoices/', view_invoices.invoice_list, name='invoices'),
    path('invoices/new/', view_invoices.invoice_edit, name='invoice_new'),
    path('invoices/<int:pk>/', view_invoices.invoice_edit, name='invoice_edit'),
    path('invoices/<int:pk>/copy/', view_invoices.invoice_copy, name='invoice_copy'),
    path('invoices/<int:pk>/delete/', view_invoices.invoice_delete, name='invoice_delete'),
    path('invoices/<int:pk>/pdf/', view_invoices.invoice_pdf, name='invoice_pdf'),
    path('invoices/<int:pk>/send/', view_invoices.invoice_send, name='invoice_send'),

    # Builders, jobs and estimates
    path('builders/', estimate_views.builder_list, name='builders'),
    path('builders/<int:pk>/', estimate_views.builder_detail, name='builder_detail'),
    path('builders/<int:pk>/delete/', estimate_views.builder_delete, name='builder_delete'),
    path('jobs/<int:pk>/', estimate_views.job_detail, name='job_detail'),
    path('jobs/<int:pk>/delete/', estimate_views.job_delete, name='job_delete'),
    path('jobs/<int:job_pk>/estimates/new/', estimate_views.estimate_edit, name='estimate_new'),
    path('jobs/<int:job_pk>/estimates/<int:pk>/', estimate_views.estimate_edit, name='estimate_edit'),
    path('estimates/<int:pk>/copy/', estimate_views.estimate_copy, name='estimate_copy'),
    path('estimates/<int:pk>/delete/', estimate_views.estimate_delete, name='estimate_delete'),
    path('estimates/quick/', estimate_views.quick_estimate, name='quick_estimate'),

    # Audit help
    path('audit/', audit_views.audit_home, name='audit'),
    path('audit/period/', audit_views.audit_period, name='audit_period'),
    path('audit/contact/', audit_views.audit_contact, name='audit_contact'),
    path('audit/documents/', audit_views.audit_document_upload, name='audit_document_upload'),
    path('audit/documents/<int:index>/remove/', audit_views.audit_document_remove, name='audit_document_remove'),
    path('audit/questionnaire/', audit_views.audit_questionnaire, name='audit_questionnaire'),
    path('audit/pdf/', audit_views.audit_pdf, name='audit_pdf'),
    path('audit/send/', audit_views.audit_send, name='audit_send'),

    # Tools
    path('tools/contract-scanner/', tools_views.contract_scanner, name='contract_scanner'),
    path('tools/1099/', tools_views.form_1099, name='form_1099'),
    path('tools/1099/<int:pk>/delete/', tools_views.form_1099_delete, name='form_1099_delete'),
]
