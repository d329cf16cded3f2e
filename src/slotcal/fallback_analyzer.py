from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, tzinfo
from typing import Any

from .civil_time import JST, at_local_time, local_date, to_local
from .planning.models import MAX_DURATION_MINUTES, TaskAnalysis, TaskCategory

logger = logging.getLogger(__name__)

SEGMENT_DELIMITER = "\n"
TITLE_JOINER = " / "

_KANJI = "一-鿿々"
_HIRAGANA = "ぁ-ゖ"
_KATAKANA = "ァ-ヺー"
_WORD = f"{_KANJI}{_HIRAGANA}{_KATAKANA}"

_AFTERNOON_PERIODS = frozenset({"午後", "夕方", "夜"})


@dataclass(frozen=True)
class TextRule:
    name: str
    pattern: re.Pattern[str]
    replacement: str = ""

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def _rule(name: str, pattern: str, replacement: str = "") -> TextRule:
    return TextRule(name=name, pattern=re.compile(pattern), replacement=replacement)


def apply_rules(text: str, rules: Sequence[TextRule]) -> str:
    for rule in rules:
        text = rule.apply(text)
    return text


# Date, clock and duration phrases. Shared by title and description cleanup.
TIME_PHRASE_RULES: tuple[TextRule, ...] = (
    _rule("relative_day", r"(?:明後日|明日|今日|今夜|今晩|今朝)(?:の|は|に)?"),
    _rule(
        "clock",
        r"(?:午後|午前|夕方|夜|朝|昼)?[0-9]{1,2}時(?!間)(?:[0-9]{1,2}分(?!間)|半)?"
        r"(?:頃|ごろ)?(?:から|まで(?:に)?|〜|~)?",
    ),
    _rule("hours", r"[0-9]+時間(?:[0-9]+分|半)?(?:ほど|くらい|ぐらい)?"),
    _rule("minutes", r"[0-9]+分(?:間)?(?:ほど|くらい|ぐらい)?"),
    _rule("part_of_day", r"(?:午前中|午後|夕方)(?:に|の|は|から)?"),
)

FILLER_RULES: tuple[TextRule, ...] = (
    _rule(
        "filler",
        r"(?:えーっと|えっと|えーと|えー|あのー|あの|うーん|まあ|ちょっと|やっぱり|やっぱ"
        r"|とりあえず|なんか|一応)",
    ),
)

CONNECTOR_RULES: tuple[TextRule, ...] = (
    _rule("after_that", r"(?:そのあとで|そのあと|その後で|その後)", SEGMENT_DELIMITER),
    _rule("punctuation", r"[、。,，!！?？\n]+", SEGMENT_DELIMITER),
)

# Specific phrases come before the generic ます/です catch-alls at the end.
VERB_RULES: tuple[TextRule, ...] = (
    _rule(
        "intention",
        r"(?:と思っています|と思ってます|と思います|と思う|つもりです|つもり|予定です"
        r"|しましょう|ましょう|たいです)",
        SEGMENT_DELIMITER,
    ),
    _rule(
        "motion",
        r"(?:行ってきます|行ってくる|行きます|行きました|行きたい|行こう|行く"
        r"|向かいます|向かう|出かけます|出かける|帰ります|帰る|戻ります|戻る|来ます)",
        SEGMENT_DELIMITER,
    ),
    _rule(
        "generic_action",
        rf"(?:しています|してます|しておく|しとく|しました|します|しません"
        rf"|やります|やりました|やる|する(?![{_HIRAGANA}]))",
        SEGMENT_DELIMITER,
    ),
    _rule(
        "concrete_action",
        r"(?:買います|買いました|買いたい|買おう|買う"
        r"|読みます|読みました|読みたい|読もう|読む"
        r"|書きます|書きました|書きたい|書こう|書く"
        r"|見ます|見ました|見たい|見よう|見る"
        r"|食べます|食べました|食べたい|食べよう|食べる"
        r"|作ります|作りました|作りたい|作ろう|作る"
        r"|洗います|洗う|送ります|送る|会います|会う|飲みます|飲む|走ります|走る"
        r"|片付けます|片付ける|済ませます|済ませる|終わらせます|終わらせる)",
        SEGMENT_DELIMITER,
    ),
    _rule("polite", r"(?:ました|ません|ます)", SEGMENT_DELIMITER),
    _rule("copula", r"(?:でした|です)", SEGMENT_DELIMITER),
)

CONJUNCTION_RULES: tuple[TextRule, ...] = (
    _rule(
        "conjunction",
        r"(?:それから|または|もしくは|そして|それと|ついでに|あとは)",
        SEGMENT_DELIMITER,
    ),
    _rule("alternative", rf"(?<=[{_KANJI}{_KATAKANA}])か(?=[{_KANJI}{_KATAKANA}])", SEGMENT_DELIMITER),
)

SEGMENT_RULES: tuple[TextRule, ...] = (
    _rule("motion_prefix", r"^.*?に(?:行って|いって|向かって|寄って|よって)(?=.{2,})"),
    _rule("linking_shite", rf"して(?=[{_WORD}]{{2,}})", "・"),
    _rule(
        "linking_gerund_after_object",
        rf"(?<=[をに])[{_KANJI}](?:って|いて|いで|んで|きて)(?=[{_WORD}]{{2,}})",
        "・",
    ),
    _rule("linking_te", rf"(?<=[{_WORD}][{_HIRAGANA}])て(?=[{_WORD}]{{2,}})", "・"),
    _rule("particle_before_link", rf"(?<=[{_KANJI}{_KATAKANA}])[をにへでと]・", "・"),
    _rule("trailing_errand", r"(?:しに行って|しに行く|に行って|に行く|しに)$"),
    _rule("trailing_gerund_after_object", rf"(?<=[をに])[{_KANJI}](?:って|いて|んで|きて)$"),
    _rule("trailing_auxiliary", r"(?:して|しよう|したい|たい|よう|ちゃう)$"),
    # Only a one-kanji verb stem after an object particle; nouns like ゴミ出し stay intact.
    _rule("trailing_stem", rf"(?<=[をに][{_KANJI}])し$"),
    _rule(
        "sentence_final",
        rf"(?:(?<![{_HIRAGANA}])(?:かな|かも|よね)|(?<=[{_KANJI}{_KATAKANA}])[ねよなわ])$",
    ),
    _rule("trailing_te", r"(?<=.)て$"),
    _rule("trailing_object_particle", r"(?:を|へ|から|まで)$"),
    _rule(
        "trailing_particle",
        rf"(?<=[{_KANJI}{_KATAKANA}0-9A-Za-z])(?:より|[にでとがはもの])$",
    ),
    _rule("leading_particle", rf"^(?:から|まで|[をにへでとがはもの](?=[{_KANJI}{_KATAKANA}]))"),
    _rule("edges", r"^[\s・/~〜]+|[\s・/~〜]+$"),
)

_CATEGORY_KEYWORDS: tuple[tuple[TaskCategory, tuple[str, ...]], ...] = (
    (
        "exercise",
        (
            "トレーニング",
            "筋トレ",
            "運動",
            "ジム",
            "ランニング",
            "ジョギング",
            "ウォーキング",
            "散歩",
            "ヨガ",
            "ストレッチ",
            "水泳",
            "プール",
            "テニス",
            "サッカー",
        ),
    ),
    (
        "work",
        (
            "仕事",
            "会議",
            "ミーティング",
            "打ち合わせ",
            "資料",
            "メール",
            "出社",
            "職場",
            "業務",
            "商談",
            "プレゼン",
            "報告",
        ),
    ),
    (
        "study",
        ("勉強", "学習", "宿題", "復習", "予習", "読書", "試験", "講義", "授業", "レポート", "英語"),
    ),
    (
        "chore",
        ("家事", "掃除", "洗濯", "料理", "片付け", "皿洗い", "ゴミ", "着替え", "布団"),
    ),
    (
        "shopping",
        ("買い物", "買い", "買う", "購入", "スーパー", "コンビニ", "ドラッグストア"),
    ),
)

_CATEGORY_LABELS: dict[str, TaskCategory] = {
    "仕事": "work",
    "勉強": "study",
    "運動": "exercise",
    "家事": "chore",
    "買い物": "shopping",
    "その他": "other",
    "work": "work",
    "study": "study",
    "exercise": "exercise",
    "chore": "chore",
    "shopping": "shopping",
    "other": "other",
}

_START_CLOCK_RE = re.compile(
    r"(?P<period>午後|午前|夕方|夜)?(?P<hour>[0-9]{1,2})時(?!間)"
    r"(?:(?P<minute>[0-9]{1,2})分(?!間)|(?P<half>半))?"
)
_END_CLOCK_RE = re.compile(
    r"(?P<period>午後|午前|夕方|夜)?(?P<hour>[0-9]{1,2})時"
    r"(?:(?P<half>半)|(?P<minute>[0-9]{1,2})分)?\s*まで(?:に)?"
)
_UNTIL_RE = re.compile(r"\s*まで")
_HOURS_DURATION_RE = re.compile(
    r"(?P<hours>[0-9]+)時間(?:(?P<minutes>[0-9]+)分|(?P<half>半))?"
)
_MINUTES_DURATION_RE = re.compile(r"(?P<minutes>[0-9]+)分")
_DAY_OFFSET_WORDS: tuple[tuple[str, int], ...] = (("明後日", 2), ("明日", 1))


@dataclass(frozen=True)
class FallbackAnalysis:
    analysis: TaskAnalysis
    duration_explicit: bool
    start_time_found: bool
    day_offset: int = 0


@dataclass(frozen=True)
class _Clock:
    hour: int
    minute: int
    afternoon_shift: bool
    span: tuple[int, int]

    @property
    def minutes_of_day(self) -> int:
        return self.hour * 60 + self.minute


def create_fallback_analysis(
    text: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = JST,
    default_duration_minutes: int = 30,
) -> FallbackAnalysis:
    """Analyze one Japanese task sentence without any model call.

    Output depends only on `text` and `now`.
    """
    normalized = normalize_text(text)
    if not normalized:
        raise ValueError("Input is empty.")

    current = to_local(now or datetime.now(tz), tz=tz)
    day_offset, working = _extract_day_offset(normalized)
    day = local_date(current, tz=tz) + timedelta(days=day_offset)

    preferred_start: datetime | None = None
    start_clock = _find_start_clock(working)
    if start_clock is not None:
        working = _blank_span(working, start_clock.span)
        preferred_start = at_local_time(day, start_clock.hour, start_clock.minute, tz=tz)

    duration_minutes = default_duration_minutes
    duration_explicit = False
    deadline: datetime | None = None

    end_clock = _find_end_clock(working, inherit_afternoon=_afternoon(start_clock))
    if end_clock is not None:
        working = _blank_span(working, end_clock.span)
        if start_clock is not None:
            difference = end_clock.minutes_of_day - start_clock.minutes_of_day
            if difference > 0:
                duration_minutes = difference
                duration_explicit = True
        else:
            deadline = at_local_time(day, end_clock.hour, end_clock.minute, tz=tz)

    explicit = _find_explicit_duration(working)
    if explicit is not None:
        duration_minutes, span = explicit
        working = _blank_span(working, span)
        duration_explicit = True

    analysis = TaskAnalysis(
        title=extract_title(normalized),
        description=extract_description(normalized) or text.strip(),
        duration_minutes=duration_minutes,
        deadline=deadline,
        preferred_start_time=preferred_start,
        category=classify_category(normalized),
    )
    logger.debug(
        "Fallback analysis: start=%s duration=%d explicit=%s category=%s title=%r",
        preferred_start.isoformat() if preferred_start else None,
        duration_minutes,
        duration_explicit,
        analysis.category,
        analysis.title,
    )
    return FallbackAnalysis(
        analysis=analysis,
        duration_explicit=duration_explicit,
        start_time_found=start_clock is not None,
        day_offset=day_offset,
    )


def apply_fallback_corrections(analysis: TaskAnalysis, fallback: FallbackAnalysis) -> TaskAnalysis:
    """Overlay explicit start time and duration found locally onto `analysis`."""
    changes: dict[str, Any] = {}
    local = fallback.analysis
    if fallback.start_time_found and local.preferred_start_time is not None:
        changes["preferred_start_time"] = local.preferred_start_time
    if fallback.duration_explicit:
        changes["duration_minutes"] = local.duration_minutes
    if not changes:
        return analysis
    return replace(analysis, **changes)


def extract_title(text: str) -> str:
    """Reduce a spoken sentence to short keywords joined with " / "."""
    normalized = normalize_text(text)
    working = apply_rules(normalized, TIME_PHRASE_RULES)
    working = apply_rules(working, FILLER_RULES)
    working = apply_rules(working, CONNECTOR_RULES)
    working = apply_rules(working, VERB_RULES)
    working = apply_rules(working, CONJUNCTION_RULES)

    keywords: list[str] = []
    for segment in working.split(SEGMENT_DELIMITER):
        keyword = clean_segment(segment)
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    if not keywords:
        return normalized
    return TITLE_JOINER.join(keywords)


def clean_segment(segment: str) -> str:
    cleaned = segment.strip()
    # Stripping one remnant can expose another (e.g. "を" before "買って").
    for _ in range(4):
        stripped = apply_rules(cleaned, SEGMENT_RULES).strip()
        if stripped == cleaned:
            break
        cleaned = stripped
    return cleaned


def extract_description(text: str) -> str:
    cleaned = apply_rules(normalize_text(text), TIME_PHRASE_RULES)
    cleaned = re.sub(r"\s{2,}", " ", cleaned).strip(" 、。,")
    return re.sub(rf"^[をにへでとがはもの](?=[{_KANJI}{_KATAKANA}])", "", cleaned)


def classify_category(text: str) -> TaskCategory:
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return "other"


def normalize_category(label: str) -> TaskCategory:
    return _CATEGORY_LABELS.get(label.strip().lower(), "other")


def normalize_text(text: str) -> str:
    return unicodedata.normalize("NFKC", text).strip()


def _extract_day_offset(text: str) -> tuple[int, str]:
    for word, offset in _DAY_OFFSET_WORDS:
        index = text.find(word)
        if index >= 0:
            return offset, _blank_span(text, (index, index + len(word)))
    return 0, text


def _find_start_clock(text: str) -> _Clock | None:
    for match in _START_CLOCK_RE.finditer(text):
        if _UNTIL_RE.match(text, match.end()):
            continue
        clock = _clock_from_match(match, inherit_afternoon=False)
        if clock is not None:
            return clock
    return None


def _find_end_clock(text: str, *, inherit_afternoon: bool) -> _Clock | None:
    for match in _END_CLOCK_RE.finditer(text):
        clock = _clock_from_match(match, inherit_afternoon=inherit_afternoon)
        if clock is not None:
            return clock
    return None


def _clock_from_match(match: re.Match[str], *, inherit_afternoon: bool) -> _Clock | None:
    period = match.group("period")
    hour = int(match.group("hour"))
    if match.group("half"):
        minute = 30
    else:
        minute = int(match.group("minute") or "0")

    shifted = False
    if hour < 12 and (period in _AFTERNOON_PERIODS or (period is None and inherit_afternoon)):
        hour += 12
        shifted = True
    if hour > 23 or minute > 59:
        return None
    return _Clock(hour=hour, minute=minute, afternoon_shift=shifted, span=match.span())


def _afternoon(clock: _Clock | None) -> bool:
    return clock is not None and clock.afternoon_shift


def _find_explicit_duration(text: str) -> tuple[int, tuple[int, int]] | None:
    hours_match = _HOURS_DURATION_RE.search(text)
    if hours_match is not None:
        extra = 30 if hours_match.group("half") else int(hours_match.group("minutes") or "0")
        minutes = int(hours_match.group("hours")) * 60 + extra
        span = hours_match.span()
    else:
        minutes_match = _MINUTES_DURATION_RE.search(text)
        if minutes_match is None:
            return None
        minutes = int(minutes_match.group("minutes"))
        span = minutes_match.span()
    if not 0 < minutes <= MAX_DURATION_MINUTES:
        return None
    return minutes, span


def _blank_span(text: str, span: tuple[int, int]) -> str:
    start, end = span
    return f"{text[:start]} {text[end:]}"
