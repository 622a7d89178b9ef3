# dashboard/views.py
"""
Server-rendered dashboard: bill list with period stats, bill detail, and the
upload form. Pages call the same services as the REST API; the bearer token
lives in the `access_token` cookie.
"""
import logging
from functools import wraps

from django.http import HttpResponse, HttpResponseRedirect
from django.shortcuts import render
from django.urls import reverse
from django.views.decorators.http import require_http_methods, require_POST

from bills import providers
from bills.serializers import BillUploadSerializer
from bills.utils import is_valid_gstin
from common.exceptions import AuthError, ClientInputError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "access_token"
PERIOD_CHOICES = (7, 30, 90, 365)


def identity_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        token = request.COOKIES.get(TOKEN_COOKIE)
        if not token:
            return HttpResponseRedirect(reverse("dashboard:signin"))
        try:
            request.identity = providers.identity_client().get_user(token)
        except AuthError:
            response = HttpResponseRedirect(reverse("dashboard:signin") + "?expired=1")
            response.delete_cookie(TOKEN_COOKIE)
            return response
        except UpstreamError as e:
            logger.error(f"Dashboard sign-in check failed: {e}")
            return render(request, "dashboard/error.html", {"message": "Sign-in service unavailable"}, status=503)
        return view(request, *args, **kwargs)
    return wrapper


@require_http_methods(["GET", "POST"])
def signin(request):
    if request.method == "POST":
        token = (request.POST.get("access_token") or "").strip()
        if token:
            response = HttpResponseRedirect(reverse("dashboard:bill-list"))
            response.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="Lax", secure=request.is_secure())
            return response
    return render(request, "dashboard/signin.html", {"expired": request.GET.get("expired") == "1"})


@require_POST
def signout(request):
    response = HttpResponseRedirect(reverse("dashboard:signin"))
    response.delete_cookie(TOKEN_COOKIE)
    return response


@identity_required
def bill_list(request):
    period = request.GET.get("period") or "30"
    service = providers.query_service()
    context = {"period": period, "period_choices": PERIOD_CHOICES, "user": request.identity}
    try:
        context["bills"] = service.list_bills(request.identity.id, limit=request.GET.get("limit") or 25)
        context["stats"] = service.get_stats(request.identity.id, period)
    except UpstreamError as e:
        logger.error(f"Dashboard list failed for {request.identity.id}: {e}")
        context["error"] = "Could not load bills. Please try again."
    return render(request, "dashboard/bill_list.html", context)


@identity_required
def bill_detail(request, bill_id):
    try:
        bill = providers.query_service().get_bill(request.identity.id, bill_id)
    except NotFoundError:
        return render(request, "dashboard/error.html", {"message": "Bill not found"}, status=404)
    return render(request, "dashboard/bill_detail.html", {
        "bill": bill,
        "items": bill.items.all(),
        "seller_gstin_valid": is_valid_gstin(bill.seller_gstin),
        "buyer_gstin_valid": is_valid_gstin(bill.buyer_gstin),
        "user": request.identity,
    })


@identity_required
def bill_download(request, bill_id):
    try:
        downloaded = providers.query_service().download_bill(request.identity.id, bill_id)
    except NotFoundError:
        return render(request, "dashboard/error.html", {"message": "Bill not found"}, status=404)
    except UpstreamError as e:
        logger.error(f"Dashboard download of bill {bill_id} failed: {e}")
        return render(request, "dashboard/error.html", {"message": "File unavailable"}, status=500)
    response = HttpResponse(downloaded.content, content_type=downloaded.content_type)
    response["Content-Disposition"] = f'attachment; filename="{downloaded.filename}"'
    return response


@identity_required
@require_POST
def bill_delete(request, bill_id):
    try:
        providers.query_service().delete_bill(request.identity.id, bill_id)
    except NotFoundError:
        return render(request, "dashboard/error.html", {"message": "Bill not found"}, status=404)
    return HttpResponseRedirect(reverse("dashboard:bill-list"))


@identity_required
@require_http_methods(["GET", "POST"])
def upload(request):
    context = {"user": request.identity, "state": "idle", "bill_type": "purchase"}
    if request.method == "GET":
        return render(request, "dashboard/upload.html", context)

    data = {"billType": request.POST.get("billType") or "purchase"}
    if "file" in request.FILES:
        data["file"] = request.FILES["file"]
    form = BillUploadSerializer(data=data)
    context["bill_type"] = data["billType"]
    if not form.is_valid():
        errors = form.errors.get("file") or form.errors.get("billType") or ["Invalid upload"]
        context.update(state="error", error=str(errors[0]))
        return render(request, "dashboard/upload.html", context, status=400)

    try:
        result = providers.ingestion_service().ingest(
            uploaded_file=form.validated_data["file"],
            transaction_type=form.validated_data["billType"],
            user=request.identity,
        )
    except ClientInputError as e:
        context.update(state="error", error=str(e.detail))
        return render(request, "dashboard/upload.html", context, status=400)
    except UpstreamError as e:
        logger.error(f"Dashboard upload failed for {request.identity.id}: {e}")
        context.update(state="error", error="Processing failed. Please try again.")
        return render(request, "dashboard/upload.html", context, status=500)

    context.update(state="success", bill=result.bill)
    return render(request, "dashboard/upload.html", context)
