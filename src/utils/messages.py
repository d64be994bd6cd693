"""User-facing intake and tracking messages (English default, Thai on request)."""

from typing import Dict, Optional

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "created": "Your report has been submitted",
        "validation_error": "Some fields are invalid",
        "rate_limited": "Too many reports from your network, please wait a minute and try again",
        "duplicate": "This report was already submitted a few minutes ago",
        "internal_error": "Something went wrong while creating your report, please try again",
        "not_found": "Ticket not found or employee code does not match",
        "survey_exists": "A satisfaction survey was already submitted for this ticket",
        "survey_not_allowed": "Surveys can be submitted once the ticket is resolved or closed",
        "survey_thanks": "Thank you for your feedback",
        "comment_added": "Comment added",
    },
    "th": {
        "created": "สร้างรายการแจ้งปัญหาเรียบร้อยแล้ว",
        "validation_error": "ข้อมูลไม่ถูกต้อง",
        "rate_limited": "ส่งรายการบ่อยเกินไป กรุณารอสักครู่แล้วลองใหม่อีกครั้ง",
        "duplicate": "รายการนี้ถูกส่งไปแล้วเมื่อไม่กี่นาทีที่ผ่านมา",
        "internal_error": "เกิดข้อผิดพลาดในการสร้างรายการ กรุณาลองใหม่อีกครั้ง",
        "not_found": "ไม่พบรายการ Ticket หรือรหัสพนักงานไม่ถูกต้อง",
        "survey_exists": "คุณได้ประเมินความพึงพอใจไปแล้ว",
        "survey_not_allowed": "สามารถประเมินได้เมื่อสถานะเป็น แก้ไขแล้ว หรือ ปิดงาน เท่านั้น",
        "survey_thanks": "ขอบคุณสำหรับการประเมินความพึงพอใจ",
        "comment_added": "เพิ่มความคิดเห็นเรียบร้อยแล้ว",
    },
}


def language_from_headers(headers: Optional[Dict[str, str]]) -> str:
    """Pick ``th`` when Accept-Language prefers Thai, otherwise ``en``."""
    for name, value in (headers or {}).items():
        if name.lower() == "accept-language" and (value or "").lower().startswith("th"):
            return "th"
    return "en"


def message(key: str, language: str = "en") -> str:
    catalog = MESSAGES.get(language, MESSAGES["en"])
    return catalog.get(key) or MESSAGES["en"].get(key, key)
