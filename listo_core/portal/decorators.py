from functools import wraps

from django.contrib import messages
from django.shortcuts import redirect
from django.urls import reverse
from django.utils.http import urlencode


def signed_in_required(view_func):
    """Send signed-out visitors to the login page, remembering where they were going."""

    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        state = getattr(request, "listo", None)
        signed_in = state.is_signed_in if state is not None else request.user.is_authenticated
        if signed_in:
            return view_func(request, *args, **kwargs)

        messages.error(request, "Please log in to access this page.")
        login_url = reverse("portal:login")
        return redirect(f"{login_url}?{urlencode({'next': request.get_full_path()})}")

    return _wrapped_view
