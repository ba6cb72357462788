"""
Validation of submitted responses against a form snapshot.

Every field declared in the snapshot is looked up among the responses by
``field_name``. A required field with no usable answer fails with
"required field missing"; answered fields are then checked by a function
picked from the field's variant class. Responses naming fields that are
not in the snapshot are ignored.
"""
import logging
import re
from datetime import date, datetime
from typing import Callable, Optional

from jobboard.database_types import utcnow
from jobboard.errors import ValidationError
from jobboard.schemas.application import ApplicationResponseItem
from jobboard.schemas.form import (
    ChoiceField,
    DateField,
    FormSnapshot,
    NumberField,
    RecordingField,
    TextField,
    UploadField,
)
from jobboard.services.uploads import DOCUMENT_MIME_TYPES, IMAGE_MIME_TYPES, RECORDING_MIME_TYPES

logger = logging.getLogger(__name__)


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9()\-.\s]{6,20}$")
URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)

MULTI_VALUE_TYPES = ("multi_select", "checkbox")

# upload field type -> (accepted mime types, family name for messages)
UPLOAD_FAMILIES = {
    "image": (IMAGE_MIME_TYPES, "image"),
    "video": ({m for m in RECORDING_MIME_TYPES if m.startswith("video/")}, "video"),
    "file": (DOCUMENT_MIME_TYPES, "document"),
}


# ============================================================
# ANSWER PRESENCE
# ============================================================

def _blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _recording(field: RecordingField, response: ApplicationResponseItem):
    if field.field_type == "voice_recording":
        return response.voice_recording
    return response.video_recording


def _is_answered(field, response: Optional[ApplicationResponseItem]) -> bool:
    if response is None:
        return False
    if isinstance(field, RecordingField):
        recording = _recording(field, response)
        return recording is not None and not _blank(recording.url)
    if isinstance(field, UploadField):
        return bool(response.files) or not _blank(response.value)
    return not _blank(response.value)


# ============================================================
# PER-VARIANT CHECKS
# ============================================================

def _check_text(field: TextField, response: ApplicationResponseItem) -> None:
    label = field.field_label
    if not isinstance(response.value, str):
        raise ValidationError(f"{label} must be text")
    value = response.value.strip()

    rules = field.validation
    if rules:
        if rules.min_length is not None and len(value) < rules.min_length:
            raise ValidationError(f"{label} must be at least {rules.min_length} characters")
        if rules.max_length is not None and len(value) > rules.max_length:
            raise ValidationError(f"{label} must be at most {rules.max_length} characters")
        if rules.pattern:
            try:
                matched = re.search(rules.pattern, value) is not None
            except re.error:
                logger.warning(f"Ignoring invalid pattern on field {field.field_name}: {rules.pattern}")
                matched = True
            if not matched:
                raise ValidationError(f"{label} has an invalid format")

    if field.field_type == "email" and not EMAIL_PATTERN.match(value):
        raise ValidationError(f"{label} must be a valid email address")
    if field.field_type == "phone" and not PHONE_PATTERN.match(value):
        raise ValidationError(f"{label} must be a valid phone number")
    if field.field_type == "url" and not URL_PATTERN.match(value):
        raise ValidationError(f"{label} must be a valid URL")


def _check_number(field: NumberField, response: ApplicationResponseItem) -> None:
    label = field.field_label
    value = response.value
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number")

    rules = field.validation
    if rules:
        if rules.min is not None and number < rules.min:
            raise ValidationError(f"{label} must be at least {rules.min}")
        if rules.max is not None and number > rules.max:
            raise ValidationError(f"{label} must be at most {rules.max}")


def _check_date(field: DateField, response: ApplicationResponseItem) -> None:
    value = response.value
    if isinstance(value, (date, datetime)):
        return
    try:
        datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field.field_label} must be a valid date")


def _check_choice(field: ChoiceField, response: ApplicationResponseItem) -> None:
    allowed = field.option_values()
    if field.field_type in MULTI_VALUE_TYPES:
        values = response.value if isinstance(response.value, list) else [response.value]
    else:
        if isinstance(response.value, list):
            raise ValidationError(f"{field.field_label} accepts a single option")
        values = [response.value]

    if not allowed:
        return
    invalid = [str(value) for value in values if str(value) not in allowed]
    if invalid:
        raise ValidationError(f"invalid option for {field.field_label}: {', '.join(invalid)}")


def _check_upload(field: UploadField, response: ApplicationResponseItem) -> None:
    allowed, kind = UPLOAD_FAMILIES[field.field_type]
    for attachment in response.files:
        if _blank(attachment.url):
            raise ValidationError(f"file url missing for {field.field_label}")
        mime_type = (attachment.mime_type or "").split(";")[0].strip().lower()
        if not mime_type:
            raise ValidationError(f"file type missing for {field.field_label}")
        if mime_type not in allowed:
            raise ValidationError(f"{field.field_label} accepts {kind} files only, got {mime_type}")


def _check_recording(field: RecordingField, response: ApplicationResponseItem) -> None:
    kind = "voice" if field.field_type == "voice_recording" else "video"
    recording = _recording(field, response)
    duration = recording.duration
    if duration is None:
        return

    config = field.recording_config
    if config.min_duration is not None and duration < config.min_duration:
        raise ValidationError(
            f"{kind} recording for {field.field_label} is {duration:g}s, "
            f"below the minimum duration of {config.min_duration:g}s"
        )
    if config.max_duration is not None and duration > config.max_duration:
        raise ValidationError(
            f"{kind} recording for {field.field_label} is {duration:g}s, "
            f"above the maximum duration of {config.max_duration:g}s"
        )


FIELD_CHECKS: dict[type, Callable] = {
    TextField: _check_text,
    NumberField: _check_number,
    DateField: _check_date,
    ChoiceField: _check_choice,
    UploadField: _check_upload,
    RecordingField: _check_recording,
}


# ============================================================
# ENTRY POINT
# ============================================================

def _missing_message(field) -> str:
    if isinstance(field, RecordingField):
        kind = "voice" if field.field_type == "voice_recording" else "video"
        return f"{kind} recording required for {field.field_label}"
    return f"required field missing: {field.field_label}"


def validate_responses(
    responses: list[ApplicationResponseItem],
    snapshot: FormSnapshot,
) -> list[ApplicationResponseItem]:
    """
    Check ``responses`` against every field of ``snapshot``.

    Raises ValidationError naming the first offending field. On success
    returns the responses with schema labels/types filled in where the
    client left them out and ``uploaded_at`` stamped on recordings that
    lack it.
    """
    by_name: dict[str, ApplicationResponseItem] = {}
    for response in responses:
        by_name.setdefault(response.field_name, response)

    fields = {}
    for field in snapshot.iter_fields():
        fields[field.field_name] = field
        response = by_name.get(field.field_name)

        if not _is_answered(field, response):
            if field.is_required:
                raise ValidationError(_missing_message(field))
            continue

        FIELD_CHECKS[type(field)](field, response)

    now = utcnow()
    accepted = []
    for response in responses:
        update = {}
        field = fields.get(response.field_name)
        if field is not None:
            if not response.field_label:
                update["field_label"] = field.field_label
            if not response.field_type:
                update["field_type"] = field.field_type
        for attr in ("voice_recording", "video_recording"):
            recording = getattr(response, attr)
            if recording is not None and recording.uploaded_at is None:
                update[attr] = recording.model_copy(update={"uploaded_at": now})
        accepted.append(response.model_copy(update=update) if update else response)
    return accepted
