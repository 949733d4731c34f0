import json

from django.contrib import messages
from django.http import JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST

from .decorators import signed_in_required
from .errors import ListoError, friendly_error
from .estimate_utils import (
    BUILDER_DOCUMENT_FIELDS,
    CATEGORY_LABOR,
    CATEGORY_MATERIALS,
    CATEGORY_OTHER,
    CATEGORY_SUBCONTRACTORS,
    clean_categories,
    compute_estimate_totals,
    copy_estimate,
    save_estimate,
    store_builder_document,
    store_project_coi,
)
from .forms import ESTIMATE_ROW_FIELDS, BuilderForm, EstimateForm, JobForm
from .models import Builder, Estimate, Job


def _store_builder_uploads(request, builder, form):
    for kind in BUILDER_DOCUMENT_FIELDS:
        upload = form.cleaned_data.get(kind)
        if not upload:
            continue
        try:
            store_builder_document(builder, kind, upload)
        except ListoError as exc:
            messages.error(request, friendly_error(exc))


@signed_in_required
def builder_list(request):
    builders = Builder.objects.filter(user=request.user).prefetch_related("jobs")
    if request.method == "POST":
        form = BuilderForm(request.POST, request.FILES)
        if form.is_valid():
            builder = form.save(commit=False)
            builder.user = request.user
            builder.save()
            _store_builder_uploads(request, builder, form)
            messages.success(request, f"{builder.builder_name} added.")
            return redirect("portal:builder_detail", pk=builder.pk)
    else:
        form = BuilderForm()
    return render(request, "portal/estimates/builders.html", {"builders": builders, "form": form})


@signed_in_required
def builder_detail(request, pk):
    builder = get_object_or_404(Builder, pk=pk, user=request.user)
    if request.method == "POST" and request.POST.get("form") == "job":
        form = BuilderForm(instance=builder)
        job_form = JobForm(request.POST, request.FILES)
        if job_form.is_valid():
            job = job_form.save(commit=False)
            job.builder = builder
            job.save()
            upload = job_form.cleaned_data.get("project_coi")
            if upload:
                try:
                    store_project_coi(job, upload)
                except ListoError as exc:
                    messages.error(request, friendly_error(exc))
            messages.success(request, f"Job {job.job_name} added.")
            return redirect("portal:job_detail", pk=job.pk)
    elif request.method == "POST":
        form = BuilderForm(request.POST, request.FILES, instance=builder)
        job_form = JobForm()
        if form.is_valid():
            form.save()
            _store_builder_uploads(request, builder, form)
            messages.success(request, "Builder saved.")
            return redirect("portal:builder_detail", pk=builder.pk)
    else:
        form = BuilderForm(instance=builder)
        job_form = JobForm()
    context = {"builder": builder, "form": form, "job_form": job_form, "jobs": builder.jobs.all()}
    return render(request, "portal/estimates/builder_detail.html", context)


@signed_in_required
@require_POST
def builder_delete(request, pk):
    builder = get_object_or_404(Builder, pk=pk, user=request.user)
    name = builder.builder_name
    builder.delete()
    messages.success(request, f"{name} and its jobs were deleted.")
    return redirect("portal:builders")


@signed_in_required
def job_detail(request, pk):
    job = get_object_or_404(Job, pk=pk, builder__user=request.user)
    if request.method == "POST":
        form = JobForm(request.POST, request.FILES, instance=job)
        if form.is_valid():
            form.save()
            upload = form.cleaned_data.get("project_coi")
            if upload:
                try:
                    store_project_coi(job, upload)
                except ListoError as exc:
                    messages.error(request, friendly_error(exc))
            messages.success(request, "Job saved.")
            return redirect("portal:job_detail", pk=job.pk)
    else:
        form = JobForm(instance=job)
    context = {"job": job, "builder": job.builder, "form": form, "estimates": job.estimates.all()}
    return render(request, "portal/estimates/job_detail.html", context)


@signed_in_required
@require_POST
def job_delete(request, pk):
    job = get_object_or_404(Job, pk=pk, builder__user=request.user)
    builder_pk = job.builder_id
    job.delete()
    messages.success(request, "Job deleted.")
    return redirect("portal:builder_detail", pk=builder_pk)


def _estimate_initial(estimate):
    return {
        "estimate_name": estimate.estimate_name,
        "notes": estimate.notes,
        "overhead_pct": estimate.overhead_pct,
        "profit_pct": estimate.profit_pct,
        "tax_enabled": estimate.tax_enabled,
        "tax_pct": estimate.tax_pct,
        "categories": json.dumps(estimate.categories or {}),
    }


ROW_SECTION_TITLES = {
    CATEGORY_LABOR: ("Labor", ("Hours", "Rate")),
    CATEGORY_MATERIALS: ("Materials", ("Qty", "Unit cost")),
    CATEGORY_SUBCONTRACTORS: ("Subcontractors", ("Amount",)),
    CATEGORY_OTHER: ("Other", ("Amount",)),
}


def _row_sections(categories):
    sections = []
    for category, fields in ESTIMATE_ROW_FIELDS.items():
        title, labels = ROW_SECTION_TITLES[category]
        sections.append(
            {
                "category": category,
                "title": title,
                "labels": labels,
                "fields": fields[1:],
                "rows": categories.get(category) or [],
            }
        )
    return sections


@signed_in_required
def estimate_edit(request, job_pk, pk=None):
    job = get_object_or_404(Job, pk=job_pk, builder__user=request.user)
    estimate = get_object_or_404(Estimate, pk=pk, job=job) if pk else None
    if request.method == "POST":
        form = EstimateForm(request.POST)
        if form.is_valid():
            action = request.POST.get("action", "save")
            try:
                saved = save_estimate(job, form.cleaned_data, None if action == "copy" else estimate)
            except ListoError as exc:
                messages.error(request, friendly_error(exc))
            else:
                messages.success(request, f"Estimate {saved.estimate_name} saved.")
                return redirect("portal:estimate_edit", job_pk=job.pk, pk=saved.pk)
        categories = form.cleaned_data.get("categories") or {}
    else:
        form = EstimateForm(initial=_estimate_initial(estimate) if estimate else None)
        categories = estimate.categories if estimate else {}
    context = {
        "job": job,
        "estimate": estimate,
        "form": form,
        "row_sections": _row_sections(clean_categories(categories)),
        "totals": estimate and compute_estimate_totals(
            estimate.categories, estimate.overhead_pct, estimate.profit_pct, estimate.tax_pct, estimate.tax_enabled
        ),
    }
    return render(request, "portal/estimates/estimate_edit.html", context)


@signed_in_required
@require_POST
def estimate_copy(request, pk):
    estimate = get_object_or_404(Estimate, pk=pk, job__builder__user=request.user)
    duplicate = copy_estimate(estimate)
    messages.success(request, f"Copied to {duplicate.estimate_name}.")
    return redirect("portal:estimate_edit", job_pk=duplicate.job_id, pk=duplicate.pk)


@signed_in_required
@require_POST
def estimate_delete(request, pk):
    estimate = get_object_or_404(Estimate, pk=pk, job__builder__user=request.user)
    job_pk = estimate.job_id
    estimate.delete()
    messages.success(request, "Estimate deleted.")
    return redirect("portal:job_detail", pk=job_pk)


@signed_in_required
@require_POST
def quick_estimate(request):
    """Totals for an unsaved estimate, for the live calculator."""
    form = EstimateForm(request.POST, require_name=False)
    if not form.is_valid():
        return JsonResponse({"success": False, "message": "Line items could not be read."}, status=400)
    data = form.cleaned_data
    totals = compute_estimate_totals(
        data["categories"], data["overhead_pct"], data["profit_pct"], data["tax_pct"], data["tax_enabled"]
    )
    return JsonResponse({"success": True, "estimate_name": data["estimate_name"], "totals": totals.as_dict()})
