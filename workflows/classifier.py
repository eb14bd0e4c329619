"""Filename-based category guessing.

Each filename token is compared against per-category keyword lists. A token
and a keyword match when either contains the other; each match is one point
for the keyword's category.
"""

import re
from typing import Dict, List, Optional

OTHER_CATEGORY = "אחר"
WARRANTY_CATEGORY = "אחריות"

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "כלכלה": [
        "חשבון", "חשבונית", "חשבונית מס", "חשבוניתמס", "חשבוניתמס קבלה", "קבלה", "קבלות",
        "ארנונה", "ארנונה מגורים", "ארנונה לבית", "סכום לתשלום", "סכום לתשלום מיידי",
        "בנק", "בנק הפועלים", "בנק לאומי", "בנק דיסקונט", "יתרה", "מאזן", "עובר ושב", "עו\"ש",
        "אשראי", "כרטיס אשראי", "פירוט אשראי", "פירוט כרטיס", "חיוב אשראי",
        "תשלום", "תשלומים", "הוראת קבע", "הוראתקבע", "חיוב חודשי", "חיוב חודשי לכרטיס",
        "משכנתא", "הלוואה", "הלוואות", "יתרת הלוואה", "פירעון", "ריבית", "ריביות",
        "משכורת", "משכורת חודשית", "משכורת נטו", "שכר", "שכר עבודה", "שכר חודשי", "שכר נטו",
        "תלוש", "תלוש שכר", "תלושי שכר", "תלושמשכורת", "תלושמשכורת חודשי",
        "ביטוח לאומי", "ביטוחלאומי", "ביטוח לאמי", "ביטוח לאומי ישראל",
        "דמי אבטלה", "אבטלה", "מענק", "גמלה", "קצבה", "קיצבה", "קיצבה חודשית", "פנסיה",
        "קרן פנסיה", "קרןפנסיה",
        "קופת גמל", "קופתגמל", "גמל", "פנסיוני", "פנסיונית",
        "מס הכנסה", "מסהכנסה", "מס הכנסה שנתי", "דו\"ח שנתי", "דו\"ח מס", "דוח מס", "מס שנתי",
        "החזר מס", "החזרי מס", "החזרמס", "מע\"מ", "מעמ", "דיווח מע\"מ", "דוח מע\"מ", "דו\"ח מע\"מ",
        "ביטוח רכב", "ביטוח רכב חובה", "ביטוח חובה", "ביטוח מקיף", "ביטוחהדירה", "ביטוח הדירה",
        "פרמיה", "פרמיית ביטוח",
        "פוליסה", "פוליסת ביטוח", "פרמיה לתשלום", "חוב לתשלום", "הודעת חיוב",
    ],
    "רפואה": [
        "רפואה", "רפואי", "רפואית", "מסמך רפואי", "מכתב רפואי", "דוח רפואי",
        "מרפאה", "מרפאה מומחה", "מרפאת מומחים", "מרפאת נשים", "מרפאת ילדים",
        "קופת חולים", "קופתחולים", "קופה", "קופת חולים כללית", "כללית", "מכבי", "מאוחדת", "לאומית",
        "רופא", "רופאה", "רופא משפחה", "רופאת משפחה", "רופא ילדים", "רופאת ילדים",
        "סיכום ביקור", "סיכוםביקור", "סיכום מחלה", "סיכום אשפוז", "סיכום אשפוז ושחרור",
        "מכתב שחרור", "שחרור מבית חולים", "שחרור מבית\"ח", "שחרור מבית חולים כללי",
        "בדיקת דם", "בדיקות דם", "בדיקות המים", "בדיקה דם", "בדיקות מעבדה", "מעבדה",
        "אבחנה", "אבחון", "אבחנה רפואית", "דיאגנוזה", "דיאגניזה", "דיאגנוזה רפואית",
        "הפניה", "הפניית", "הפניה לבדיקות", "הפניית לרופא מומחה", "הפניה לרופא מומחה",
        "תור לרופא", "תור לרופאה", "זימון תור", "זימון בדיקה", "זימון בדיקות",
        "מרשם", "מרשם תרופות", "רשימת תרופות", "תרופות", "תרופה", "טיפול תרופתי",
        "טיפול", "טיפול רגשי", "טיפול פסיכולוגי", "פסיכולוג", "פסיכולוגית", "טיפול נפשי",
        "חיסון", "חיסוני", "תעודת התחסנות", "פנקס חיסוני", "כרטיס חיסוני", "תעודת חיסוני",
        "אשפוז", "אשפוז יום", "מחלקה", "בית חולים", "ביתחולים", "בי\"ח", "ביה\"ח",
        "אישור מחלה", "אישור מחלה לעבודה", "אישור מחלה לבית ספר",
        "אישור רפואי", "אישור כשירות", "אישור כשירות רפואית",
        "טופס התחייבות", "טופס 17", "טופס17", "התחייבות", "התחיבות", "התחיבות קופה",
        "התחייבות קופה",
        "בדיקת קורונה", "קורונה חיובי", "קורונה שלילי", "PCR", "covid", "בדיקת הריון", "US",
        "אולטרסאונד",
        "נכות רפואית", "ועדה רפואית", "קביעת נכות",
    ],
    "עבודה": [
        "חוזה העסקה", "חוזה העסקה אישי", "חוזה עבודה", "חוזה העסקה לעובד", "חוזה העסקה לעובדת",
        "מכתב קבלה לעבודה", "קבלה לעבודה", "מכתב התחלת עבודה", "ברוכים הבאים לחברה",
        "אישור העסקה", "אישור העסקה רשמי", "אישור העסקה לעובד", "אישור ותק", "אישור שנות ותק",
        "אישור ניסיון תעסוקתי",
        "תלוש שכר", "תלוששכר", "תלוש משכורת", "תלושי שכר", "תלושי משכורת", "שעות נוספות",
        "שעותנוספות", "רשימת משמרות", "משמרות",
        "שכר עבודה", "שכר לשעה", "שכר חודשי", "טופס שעות", "אישור תשלום",
        "הצהרת מעסיק", "טופס למעסיק", "אישור מעסיק", "אישור העסקה לצורך ביטוח לאומי",
        "מכתב פיטורין", "מכתב סיום העסקה", "הודעה מוקדמת", "שימוע לפני פיטורין", "פיטורין",
        "סיום העסקה", "סיום יחסי עובד מעביד", "יחסי עובד מעביד", "עובד", "מעסיק", "מעסיקה",
        "הערכת עובד", "הערכת ביצועים", "דו\"ח ביצועים", "חוות דעת מנהל", "משוב עובד",
    ],
    "בית": [
        "חוזה שכירות", "חוזהשכירות", "הסכם שכירות", "הסכםשכירות", "שוכר", "שוכרת", "שוכרים",
        "משכיר", "משכירה", "דירה",
        "נכס", "נכס מגורים", "כתובת מגורים", "מגורים קבועים", "עדכון כתובת", "הצהרת מגורים",
        "ועד בית", "ועדבית", "ועד בית חודשי", "תשלום ועד בית", "גביית ועד בית", "ועד בנין",
        "חברת חשמל", "חברת החשמל", "חשמל", "חשבון חשמל", "קריאת מונה", "מונה חשמל",
        "גז", "חברת גז", "קריאת מונה גז", "מים", "תאגיד מים", "חשבון מים", "מים חודשי",
        "אינטרנט", "ספק אינטרנט", "ראוטר", "נתב", "חשבונית אינטרנט", "הוט", "יס", "HOT", "yes",
        "סיגיב", "סיגיב אופטייס",
        "עירייה",
        "גירושין", "הסכם גירושין", "צו גירושין", "משמורת", "צו משמורת", "משמורת ילדים",
        "הסדרי ראייה", "הסדרי ראיה", "מזונות", "דמי מזונות", "תשלום מזונות", "משפחה", "משפחתי",
        "הורה משמורן", "הורה משמורנית",
    ],
    "אחריות": [
        "אחריות", "אחריות למוצר", "אחריות מוצר", "אחריות יצרן", "אחריות יבואן",
        "אחריות יבואן רשמי",
        "אחריות יבואן מורשה", "אחריות לשנה", "אחריות לשנתיים", "אחריות ל12 חודשים",
        "אחריות ל-12 חודשים",
        "אחריות ל24 חודשים", "אחריות ל-24 חודשים", "שנת אחריות", "שנתיים אחריות", "תוך אחריות",
        "תאריך אחריות", "תוך תקופת האחריות", "סיומה של האחריות", "פג תוקף אחריות",
        "פג תוקף האחריות",
        "תעודת אחריות", "ת.אחריות", "ת. אחריות", "תעודת-אחריות", "כרטיס אחריות",
        "הוכחת קנייה", "הוכחת קניה", "אישור רכישה", "חשבונית קנייה", "תעודת משלוח",
        "תעודת מסירה",
        "מספר סידורי", "serial number", "imei", "rma", "repair ticket", "repair order",
    ],
    "תעודות": [
        "תעודת זהות", "ת.ז", "תז", "תעודת לידה", "ספח", "ספח תעודת זהות", "ספח ת.ז",
        "רישיון נהיגה", "רישיון רכב", "הרכון", "passport", "הרכון ביומטרי",
        "תעודת התחסנות", "כרטיס חיסוני", "אישור לימודים", "אישור סטודנט", "אישור תלמיד",
        "אישור מגורים", "אישור כתובת", "אישור תושבות",
    ],
    "עסק": [
        "עוסק מורשה", "עוסק פטור", "תיק עוסק", "חשבונית מס", "דיווח מע\"ם", "עוסק מורשה פעיל",
        "חברה בע\"מ", "ח.פ", "מספר עוסק", "הצעת מחיר", "חשבונית ללקוח", "ספק",
    ],
    OTHER_CATEGORY: [],
}

CATEGORIES: List[str] = list(CATEGORY_KEYWORDS)

_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_TOKEN_SPLIT_RE = re.compile(r"[\s_\-]+")
_STRIP_CHARS_RE = re.compile(r'[",.():\[\]{}]')


def normalize_word(word: Optional[str]) -> str:
    """Lowercase, drop one leading conjunction "ו", strip punctuation."""
    if not word:
        return ""
    w = word.strip().lower()
    if w.startswith("ו") and len(w) > 1:
        w = w[1:]
    return _STRIP_CHARS_RE.sub("", w)


def score_categories(file_name: str,
                     keywords: Optional[Dict[str, List[str]]] = None) -> Dict[str, int]:
    """Return match counts per category for a filename (zero scores omitted)."""
    keywords = CATEGORY_KEYWORDS if keywords is None else keywords
    base = _EXTENSION_RE.sub("", file_name or "")
    tokens = [normalize_word(t) for t in _TOKEN_SPLIT_RE.split(base)]

    scores: Dict[str, int] = {}
    for token in tokens:
        if not token:
            continue
        for category, words in keywords.items():
            for kw in words:
                clean_kw = normalize_word(kw)
                if not clean_kw:
                    continue
                if clean_kw in token or token in clean_kw:
                    scores[category] = scores.get(category, 0) + 1
    return scores


def guess_category(file_name: str,
                   keywords: Optional[Dict[str, List[str]]] = None) -> str:
    """Guess a category from the filename alone.

    Highest score wins; ties go to the category listed first. Returns
    OTHER_CATEGORY when nothing matches.
    """
    keywords = CATEGORY_KEYWORDS if keywords is None else keywords
    scores = score_categories(file_name, keywords)

    best = OTHER_CATEGORY
    best_score = 0
    for category in keywords:
        score = scores.get(category, 0)
        if score > best_score:
            best = category
            best_score = score
    return best
