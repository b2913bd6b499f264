"""
Employer ID verification: upload an ID, extract its text, run the Philippine ID
heuristics, then either auto-verify or queue the document for admin review.
"""
import logging

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse

from app.auth_utils import require_user
from app.layout import csrf_input, esc, format_dt, message_block, render_page
from app.security import (
    ID_CHECK_LIMIT,
    allow_request,
    attach_csrf_cookie,
    csrf_failed,
    issue_csrf_token,
    validate_csrf,
)
from core.database import create_verification_request, get_latest_request, get_profile, set_verified
from core.errors import ValidationError
from core.idcheck import (
    PHILIPPINE_ID_TYPES,
    ExtractionError,
    detect_id_type_from_filename,
    extract_text,
    validate_philippine_id,
)
from core.storage import check_upload, resolve_path, save_upload

log = logging.getLogger("routes.verification")

router = APIRouter()

DOCUMENT_BUCKET = "verification-documents"
METHOD_LABELS = {"ocr": "Scan the image (OCR)", "pdf": "Read text from the PDF"}


def document_prefix(user_id: int) -> str:
    return f"employer-ids/{int(user_id)}"


def verification_status(profile: dict, latest: dict | None) -> str:
    if profile.get("is_verified"):
        return "verified"
    if latest and latest["status"] == "pending":
        return "pending"
    if latest and latest["status"] == "rejected":
        return "rejected"
    return "unverified"


def _upload_form(csrf_token: str, errors=None) -> str:
    type_opts = '<option value="">Detect automatically</option>' + "".join(
        f'<option value="{esc(t)}">{esc(t)}</option>' for t in PHILIPPINE_ID_TYPES
    )
    method_opts = "".join(f'<option value="{k}">{v}</option>' for k, v in METHOD_LABELS.items())
    return f"""
    <div class="card form-card">
      {message_block(errors)}
      <form method="post" action="/verification/check" enctype="multipart/form-data">
        <label>Government ID (PDF, JPG or PNG, max 5MB)</label>
        <input type="file" name="file" accept=".pdf,.jpg,.jpeg,.png" required />
        <label>ID type</label>
        <select name="id_type">{type_opts}</select>
        <label>Extraction method</label>
        <select name="method">{method_opts}</select>
        {csrf_input(csrf_token)}
        <button type="submit">Check my ID</button>
      </form>
    </div>
    """


@router.get("/verification", response_class=HTMLResponse)
def verification_page(request: Request, submitted: str = ""):
    user, denied = require_user(request, "employer")
    if denied:
        return denied

    profile = get_profile(user["id"]) or {}
    latest = get_latest_request(user["id"])
    if latest and latest["status"] == "approved" and not profile.get("is_verified"):
        set_verified(user["id"], True)
        profile["is_verified"] = 1
    status = verification_status(profile, latest)

    csrf_token = issue_csrf_token(request.cookies.get("csrf_token"))
    if status == "verified":
        body = f"""
        <div class="card">
          <h2><span class="pill verified">Verified employer</span></h2>
          <p class="muted">Verified on {format_dt(profile.get('verification_date'))}</p>
        </div>
        """
    elif status == "pending":
        body = f"""
        <div class="card">
          {message_block(success="Your document was submitted for review." if submitted else None)}
          <h2>Verification pending</h2>
          <p class="muted">Submitted {format_dt(latest['submitted_at'])}. An administrator will review your ID.</p>
        </div>
        """
    else:
        notice = ""
        if status == "rejected":
            notice = f"""
            <div class="card">
              <p class="error">Your last verification request was rejected.</p>
              <p>{esc(latest.get('admin_notes'))}</p>
            </div>
            """
        body = notice + _upload_form(csrf_token)

    resp = render_page("Verification", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


def _result_html(result: dict) -> str:
    rows = "".join(
        f"<tr><th>{label}</th><td>{esc(result.get(key) or 'Not found')}</td></tr>"
        for key, label in (
            ("id_type", "ID type"),
            ("id_number", "ID number"),
            ("date_issued", "Issued"),
            ("date_expiry", "Expires"),
        )
    )
    name = "Yes" if result.get("name_match") else "No"
    issues = "".join(f"<li>{esc(e)}</li>" for e in result.get("validation_errors") or [])
    return f"""
    <table>{rows}<tr><th>Name matches profile</th><td>{name}</td></tr></table>
    {f'<ul class="error">{issues}</ul>' if issues else ''}
    """


def _manual_review_form(csrf_token: str, document_path: str, extracted_text: str, id_type: str | None) -> str:
    type_opts = '<option value="">Not specified</option>' + "".join(
        f'<option value="{esc(t)}"{" selected" if t == id_type else ""}>{esc(t)}</option>' for t in PHILIPPINE_ID_TYPES
    )
    return f"""
    <form method="post" action="/verification/submit">
      <input type="hidden" name="document_path" value="{esc(document_path)}" />
      <label>ID type</label>
      <select name="id_type">{type_opts}</select>
      <label>Extracted text</label>
      <textarea name="extracted_text" readonly>{esc(extracted_text)}</textarea>
      {csrf_input(csrf_token)}
      <button type="submit">Submit for manual review</button>
    </form>
    """


@router.post("/verification/check", response_class=HTMLResponse)
def verification_check(
    request: Request,
    file: UploadFile = File(...),
    id_type: str = Form(""),
    method: str = Form("ocr"),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, "employer")
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()
    limit, window = ID_CHECK_LIMIT
    if not allow_request(f"idcheck:{user['id']}", limit=limit, window_seconds=window):
        return HTMLResponse("Too many verification attempts. Please try again later.", status_code=429)

    filename = file.filename or ""
    data = file.file.read()
    try:
        check_upload(DOCUMENT_BUCKET, filename, data)
    except ValidationError as exc:
        resp = render_page("Verification", _upload_form(csrf_token, exc.errors), user=user, status_code=400)
        attach_csrf_cookie(resp, csrf_token)
        return resp

    profile = get_profile(user["id"]) or {}
    selected_type = id_type.strip() or detect_id_type_from_filename(filename)

    try:
        doc = extract_text(data, filename=filename, content_type=file.content_type or "", method=method)
    except (ExtractionError, ValueError) as exc:
        log.warning("ID extraction failed", extra={"user_id": user["id"], "error": str(exc)})
        document_path = save_upload(DOCUMENT_BUCKET, document_prefix(user["id"]), filename, data)
        body = f"""
        <div class="card form-card">
          <h2>We could not read your ID automatically</h2>
          <p class="error">{esc(str(exc))}</p>
          <p class="muted">You can still send it to an administrator for review.</p>
          {_manual_review_form(csrf_token, document_path, "", selected_type)}
        </div>
        """
        resp = render_page("Verification", body, user=user)
        attach_csrf_cookie(resp, csrf_token)
        return resp

    result = validate_philippine_id(doc.text, profile.get("full_name"))
    log.info(
        "ID checked",
        extra={"user_id": user["id"], "valid": result.is_valid, "name_match": result.name_match, "id_type": result.id_type},
    )

    # Auto-verified documents are not kept on disk
    if result.is_valid and result.name_match:
        set_verified(user["id"], True)
        body = f"""
        <div class="card">
          <h2><span class="pill verified">Verified</span></h2>
          <p>Your ID was verified automatically.</p>
          {_result_html(result.to_dict())}
          <p><a href="/dashboard">Back to dashboard</a></p>
        </div>
        """
        return render_page("Verification", body, user=user)

    document_path = save_upload(DOCUMENT_BUCKET, document_prefix(user["id"]), filename, data)
    body = f"""
    <div class="card form-card">
      <h2>ID check result</h2>
      {_result_html(result.to_dict())}
      <p class="muted">Automatic verification was not possible. Submit the document for manual review
      or <a href="/verification">try another file</a>.</p>
      {_manual_review_form(csrf_token, document_path, doc.text, selected_type or result.id_type)}
    </div>
    """
    resp = render_page("Verification", body, user=user)
    attach_csrf_cookie(resp, csrf_token)
    return resp


@router.post("/verification/submit")
def verification_submit(
    request: Request,
    document_path: str = Form(...),
    id_type: str = Form(""),
    extracted_text: str = Form(""),
    csrf_token: str = Form(""),
):
    user, denied = require_user(request, "employer")
    if denied:
        return denied
    if not validate_csrf(request, csrf_token):
        return csrf_failed()

    # Only documents this employer uploaded through /verification/check
    expected_prefix = f"{DOCUMENT_BUCKET}/{document_prefix(user['id'])}/"
    target = resolve_path(document_path)
    if not document_path.startswith(expected_prefix) or ".." in document_path or target is None or not target.is_file():
        return HTMLResponse("Invalid document", status_code=400)

    latest = get_latest_request(user["id"])
    if latest and latest["status"] == "pending":
        return RedirectResponse(url="/verification", status_code=303)

    profile = get_profile(user["id"]) or {}
    parsed = validate_philippine_id(extracted_text, profile.get("full_name")).to_dict()
    chosen = id_type.strip() if id_type.strip() in PHILIPPINE_ID_TYPES else None
    create_verification_request(
        user["id"],
        document_path,
        chosen,
        extracted_text=extracted_text or None,
        parsed_data=parsed,
    )
    return RedirectResponse(url="/verification?submitted=1", status_code=303)
